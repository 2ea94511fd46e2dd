"""
Base Metrics Backend - Abstract interface for the monitoring backend.

A backend stores host records and receives custom metric values.
All methods raise BackendError subclasses on failure.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from metric_catalog.models import GraphDefinition
from metrics_backend.models import Host, MetricValue


class BaseMetricsBackend(ABC):
    """Abstract base class for monitoring backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this backend."""
        pass

    @abstractmethod
    async def find_hosts_by_name(self, address: str) -> list[Host]:
        """Find hosts whose recorded name equals the address."""
        pass

    @abstractmethod
    async def create_host(self, address: str) -> str:
        """Create a host keyed by the address; return its id."""
        pass

    @abstractmethod
    async def post_metric_values(
        self,
        host_id: str,
        values: Sequence[MetricValue],
    ) -> None:
        """Submit a batch of values for one host in a single call."""
        pass

    @abstractmethod
    async def define_graphs(self, graphs: Iterable[GraphDefinition]) -> None:
        """Register display definitions for custom metric graphs."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None

    async def __aenter__(self) -> "BaseMetricsBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
