"""
Metrics Backend Models - Host records and metric values.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class Host:
    """A backend host record."""
    id: str
    name: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Host":
        """Create from a Mackerel host JSON object."""
        created = data.get("createdAt")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            created_at=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
        )


@dataclass(frozen=True)
class MetricValue:
    """
    Latest value of one metric for one resource.

    Produced and consumed within a single pass, never persisted.
    """
    name: str
    value: float
    timestamp: int

    def to_payload(self, host_id: str) -> dict[str, Any]:
        """Convert to the backend's host-metric payload."""
        return {
            "hostId": host_id,
            "name": self.name,
            "time": self.timestamp,
            "value": self.value,
        }

    def __str__(self) -> str:
        return f"{self.name}\t{self.value:f}\t{self.timestamp}"
