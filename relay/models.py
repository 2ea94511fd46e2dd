"""
Relay Models - Outcomes reported by the reconcile, fetch and post stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PostOutcome(Enum):
    """Result of submitting one resource's batch."""
    POSTED = "posted"
    SKIPPED_UNBOUND = "skipped_unbound"
    SKIPPED_EMPTY = "skipped_empty"
    FAILED = "failed"


@dataclass
class ReconcileReport:
    """Counts from one reconciliation run."""
    found: int = 0
    created: int = 0
    ambiguous: int = 0
    failed: int = 0
    already_bound: int = 0
    failed_addresses: list[str] = field(default_factory=list)

    @property
    def bound(self) -> int:
        """Resources bound during this run."""
        return self.found + self.created

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "created": self.created,
            "ambiguous": self.ambiguous,
            "failed": self.failed,
            "already_bound": self.already_bound,
            "failed_addresses": list(self.failed_addresses),
        }
