"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the relay scheduler.

- Scheduler lifecycle states (IDLE -> RUNNING -> STOPPED)
- Pass results
- Relay configuration

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import os

from cloud_sources.aws_config import DEFAULT_REGION, AWSConfig
from metric_catalog.models import ResourceType


# ============================================================
# SCHEDULER STATE
# ============================================================

class SchedulerState(Enum):
    """Scheduler lifecycle states."""

    IDLE = "idle"
    """Created; discovery and reconciliation not yet run."""

    RUNNING = "running"
    """Resources known; passes run on every tick."""

    STOPPED = "stopped"
    """Stop requested and loop exited; terminal."""

    def can_transition_to(self, target: "SchedulerState") -> bool:
        """Check if a transition is legal."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    SchedulerState.IDLE: {SchedulerState.RUNNING, SchedulerState.STOPPED},
    SchedulerState.RUNNING: {SchedulerState.STOPPED},
    SchedulerState.STOPPED: set(),
}


# ============================================================
# PASS RESULT
# ============================================================

@dataclass
class PassResult:
    """Result of one fetch-and-post pass over all known resources."""

    pass_number: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    resources_total: int = 0
    resources_posted: int = 0
    resources_skipped: int = 0
    resources_failed: int = 0
    values_posted: int = 0

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "pass_number": self.pass_number,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "resources_total": self.resources_total,
            "resources_posted": self.resources_posted,
            "resources_skipped": self.resources_skipped,
            "resources_failed": self.resources_failed,
            "values_posted": self.values_posted,
        }


# ============================================================
# RELAY CONFIGURATION
# ============================================================

def _parse_resource_types(raw: str) -> List[ResourceType]:
    return [ResourceType(part.strip()) for part in raw.split(",") if part.strip()]


@dataclass
class RelayConfig:
    """Configuration for the relay process."""

    # Credentials
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = DEFAULT_REGION
    aws_endpoint_url: Optional[str] = None

    mackerel_api_key: Optional[str] = None
    mackerel_base_url: str = "https://api.mackerelio.com"

    # Scheduling
    tick_interval_seconds: int = 60
    """Interval between passes."""

    rediscovery_interval_seconds: int = 0
    """Re-list resources at this cadence (0 disables)."""

    single_pass: bool = False
    """Run discovery, reconciliation and one pass, then exit."""

    # Queries
    query_window_seconds: int = 120
    """Width of the trailing window queried per metric."""

    query_period_seconds: int = 60
    """Aggregation period requested from the provider."""

    request_timeout_seconds: float = 30.0
    """Per-request timeout for both provider and backend clients."""

    resource_types: List[ResourceType] = field(
        default_factory=lambda: [ResourceType.LOAD_BALANCER, ResourceType.MANAGED_DATABASE]
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    debug: bool = False
    """Raise provider client logging to DEBUG."""

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Load configuration from environment variables."""
        return cls(
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            aws_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            aws_endpoint_url=os.getenv("AWS_ENDPOINT_URL"),
            mackerel_api_key=os.getenv("MACKEREL_APIKEY"),
            mackerel_base_url=os.getenv("MACKEREL_BASE_URL", "https://api.mackerelio.com"),
            tick_interval_seconds=int(os.getenv("RELAY_TICK_INTERVAL", "60")),
            rediscovery_interval_seconds=int(os.getenv("RELAY_REDISCOVERY_INTERVAL", "0")),
            query_window_seconds=int(os.getenv("RELAY_QUERY_WINDOW", "120")),
            query_period_seconds=int(os.getenv("RELAY_QUERY_PERIOD", "60")),
            request_timeout_seconds=float(os.getenv("RELAY_REQUEST_TIMEOUT", "30")),
            resource_types=_parse_resource_types(
                os.getenv("RELAY_RESOURCE_TYPES", "load-balancer,managed-database")
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            debug=os.getenv("RELAY_DEBUG", "false").lower() == "true",
        )

    def aws_config(self) -> AWSConfig:
        """AWS client configuration derived from this config."""
        return AWSConfig(
            region=self.aws_region,
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
            endpoint_url=self.aws_endpoint_url,
            read_timeout=self.request_timeout_seconds,
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.mackerel_api_key:
            errors.append("mackerel_api_key is required (--mackerel-api-key or MACKEREL_APIKEY)")

        if self.tick_interval_seconds < 1:
            errors.append("tick_interval_seconds must be at least 1")

        if self.rediscovery_interval_seconds < 0:
            errors.append("rediscovery_interval_seconds must not be negative")

        if self.query_period_seconds < 60 or self.query_period_seconds % 60 != 0:
            errors.append("query_period_seconds must be a positive multiple of 60")

        if self.query_window_seconds < self.query_period_seconds:
            errors.append("query_window_seconds must be at least query_period_seconds")

        if self.request_timeout_seconds <= 0:
            errors.append("request_timeout_seconds must be positive")

        if not self.resource_types:
            errors.append("at least one resource type is required")

        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            errors.append("AWS key id and secret key must be given together")

        return errors
