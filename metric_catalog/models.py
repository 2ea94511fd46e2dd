"""
Metric Catalog Models - Declarative graph and metric definitions.

Everything here is immutable: a catalog is built once at startup
and shared read-only by discovery, fetching and graph registration.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Statistic(Enum):
    """Aggregation applied by the provider over one period."""
    AVERAGE = "Average"
    SUM = "Sum"


class ResourceType(Enum):
    """Kinds of cloud resources the relay polls."""
    LOAD_BALANCER = "load-balancer"
    MANAGED_DATABASE = "managed-database"

    @property
    def namespace(self) -> str:
        """CloudWatch namespace holding this resource type's metrics."""
        return _NAMESPACES[self]

    @property
    def dimension_name(self) -> str:
        """CloudWatch dimension identifying a single resource."""
        return _DIMENSIONS[self]


_NAMESPACES = {
    ResourceType.LOAD_BALANCER: "AWS/ELB",
    ResourceType.MANAGED_DATABASE: "AWS/RDS",
}

_DIMENSIONS = {
    ResourceType.LOAD_BALANCER: "LoadBalancerName",
    ResourceType.MANAGED_DATABASE: "DBInstanceIdentifier",
}


@dataclass(frozen=True)
class MetricDefinition:
    """A single provider metric and how to aggregate it."""
    name: str
    label: str
    statistic: Optional[Statistic] = None

    @property
    def effective_statistic(self) -> Statistic:
        """Configured statistic, defaulting to Average when unset."""
        return self.statistic or Statistic.AVERAGE


@dataclass(frozen=True)
class GraphDefinition:
    """
    A named group of related metrics sharing a label and unit.

    The key is globally unique across the catalog and namespaces
    every metric emitted for the graph.
    """
    key: str
    label: str
    unit: str
    metrics: tuple[MetricDefinition, ...]

    def metric_name(self, metric: MetricDefinition) -> str:
        """Backend metric name: custom.<graph key>.<metric name>."""
        return f"custom.{self.key}.{metric.name}"

    def to_graph_def(self) -> dict[str, Any]:
        """Convert to the backend's graph-definition payload."""
        return {
            "name": f"custom.{self.key}",
            "displayName": self.label,
            "unit": self.unit,
            "metrics": [
                {
                    "name": self.metric_name(metric),
                    "displayName": metric.label,
                    "isStacked": False,
                }
                for metric in self.metrics
            ],
        }
