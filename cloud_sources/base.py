"""
Base Cloud Metrics Provider - Abstract interface for resource and metric APIs.

A provider MUST:
- List the concrete resources of a type as normalized Resource records
- Answer statistics queries with normalized Datapoints
- Raise CloudProviderError subclasses (never raw SDK errors)
"""

import logging
from abc import ABC, abstractmethod

from cloud_sources.models import Datapoint, Resource, StatisticsQuery
from metric_catalog.models import ResourceType


logger = logging.getLogger(__name__)


class BaseCloudMetricsProvider(ABC):
    """
    Abstract base class for cloud metrics providers.

    Implementations only translate; error policy (log and degrade)
    lives with the callers in cloud_sources.discovery and relay.fetcher.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider."""
        pass

    @abstractmethod
    async def list_resources(self, resource_type: ResourceType) -> list[Resource]:
        """
        List resources of a type.

        Returns:
            Resources with name and address set, host_id unset

        Raises:
            DiscoveryError: If the listing call fails
        """
        pass

    @abstractmethod
    async def query_statistics(self, query: StatisticsQuery) -> list[Datapoint]:
        """
        Run one statistics query.

        Returns:
            Datapoints in provider order (possibly empty)

        Raises:
            StatisticsQueryError: If the query fails
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        return None

    async def __aenter__(self) -> "BaseCloudMetricsProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
