"""
Resource Discovery - Lists and normalizes cloud resources.

An empty result means "nothing discovered this round", not
"no resources exist": provider failures degrade to [].
"""

import logging
from typing import Iterable

from cloud_sources.base import BaseCloudMetricsProvider
from cloud_sources.exceptions import CloudProviderError
from cloud_sources.models import Resource
from metric_catalog.models import ResourceType


logger = logging.getLogger(__name__)


def dedupe_by_address(resources: Iterable[Resource]) -> list[Resource]:
    """Keep the first resource for each address, preserving order."""
    seen: dict[str, Resource] = {}
    for resource in resources:
        first = seen.get(resource.address)
        if first is not None:
            logger.warning(
                f"Duplicate address {resource.address}: "
                f"keeping {first.name}, dropping {resource.name}"
            )
            continue
        seen[resource.address] = resource
    return list(seen.values())


class ResourceDiscovery:
    """Discovers resources through a cloud metrics provider."""

    def __init__(self, provider: BaseCloudMetricsProvider) -> None:
        self._provider = provider

    async def discover(self, resource_type: ResourceType) -> list[Resource]:
        """
        List resources of a type, one per distinct address.

        Never raises: provider errors are logged and yield [].
        """
        try:
            resources = await self._provider.list_resources(resource_type)
        except CloudProviderError as e:
            logger.error(f"[{self._provider.name}] Discovery of {resource_type.value} failed: {e}")
            return []
        except Exception as e:
            logger.error(
                f"[{self._provider.name}] Unexpected error discovering {resource_type.value}: {e}",
                exc_info=True,
            )
            return []

        resources = dedupe_by_address(resources)
        logger.info(
            f"[{self._provider.name}] Discovered {len(resources)} {resource_type.value} resource(s)"
        )
        return resources

    async def discover_all(
        self,
        resource_types: Iterable[ResourceType],
    ) -> dict[ResourceType, list[Resource]]:
        """Discover every resource type in order."""
        return {
            resource_type: await self.discover(resource_type)
            for resource_type in resource_types
        }
