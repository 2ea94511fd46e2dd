"""
Cloud Source Models - Normalized resource and time-series structures.

Provider-specific response shapes never leave the provider module;
everything downstream sees these types.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from core.exceptions import HostBindingError
from metric_catalog.models import ResourceType, Statistic


@dataclass
class Resource:
    """
    A monitored cloud object.

    `address` is the stable identifier used to find or create the
    backend host. `host_id` is set once by reconciliation and never
    reassigned afterwards.
    """
    name: str
    address: str
    resource_type: ResourceType
    host_id: Optional[str] = None

    @property
    def is_bound(self) -> bool:
        """Check if the resource has a backend host."""
        return bool(self.host_id)

    @property
    def dimension_value(self) -> str:
        """Value of the provider dimension identifying this resource."""
        return self.name

    def bind(self, host_id: str) -> None:
        """
        Bind the resource to a backend host.

        Raises:
            ValueError: If host_id is empty
            HostBindingError: If already bound to a different host
        """
        if not host_id:
            raise ValueError("host_id must be non-empty")
        if self.host_id == host_id:
            return
        if self.host_id:
            raise HostBindingError(
                message=f"Resource {self.name} is already bound to {self.host_id}",
                address=self.address,
                bound_host_id=self.host_id,
                requested_host_id=host_id,
            )
        self.host_id = host_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "resource_type": self.resource_type.value,
            "host_id": self.host_id,
        }


@dataclass(frozen=True)
class Datapoint:
    """One aggregated sample returned by a statistics query."""
    timestamp: datetime
    sum: Optional[float] = None
    average: Optional[float] = None

    @property
    def unix_time(self) -> int:
        """Timestamp as whole Unix seconds."""
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return int(ts.timestamp())

    def value_for(self, statistic: Statistic) -> Optional[float]:
        """Extract the value for a statistic, None if the sample lacks it."""
        if statistic == Statistic.SUM:
            return self.sum
        return self.average


@dataclass
class StatisticsQuery:
    """Parameters for one time-series statistics query."""
    metric_name: str
    namespace: str
    dimension_name: str
    dimension_value: str
    start_time: datetime
    end_time: datetime
    statistic: Statistic = Statistic.AVERAGE
    period_seconds: int = 60

    def validate(self) -> None:
        """Validate query parameters."""
        if not self.metric_name:
            raise ValueError("metric_name is required")
        if not self.namespace:
            raise ValueError("namespace is required")
        if not self.dimension_value:
            raise ValueError("dimension_value is required")
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.period_seconds < 1 or self.period_seconds % 60 != 0:
            raise ValueError("period_seconds must be a positive multiple of 60")

    def dimensions(self) -> list[dict[str, str]]:
        """Dimensions in the provider's Name/Value list form."""
        return [{"Name": self.dimension_name, "Value": self.dimension_value}]
