"""
Cloud Sources Package - Resource discovery and time-series statistics.

Provides the CloudMetricsProvider capability and the discovery step
that turns provider listings into Resource records.

Quick Start:
    from cloud_sources import (
        AWSCloudMetricsProvider,
        AWSConfig,
        ResourceDiscovery,
    )
    from metric_catalog import ResourceType

    async def setup():
        provider = AWSCloudMetricsProvider(AWSConfig(region="ap-northeast-1"))
        discovery = ResourceDiscovery(provider)
        elbs = await discovery.discover(ResourceType.LOAD_BALANCER)
        for elb in elbs:
            print(f"{elb.name}: {elb.address}")

Adding New Providers:
    1. Create class extending BaseCloudMetricsProvider
    2. Implement: name, list_resources(), query_statistics()
    3. Raise DiscoveryError / StatisticsQueryError on failure
"""

from cloud_sources.aws_config import AWSConfig, aws_config_from_env, get_aioboto3_session
from cloud_sources.base import BaseCloudMetricsProvider
from cloud_sources.discovery import ResourceDiscovery, dedupe_by_address
from cloud_sources.exceptions import (
    CloudProviderError,
    DiscoveryError,
    StatisticsQueryError,
)
from cloud_sources.models import Datapoint, Resource, StatisticsQuery
from cloud_sources.providers import AWSCloudMetricsProvider


__all__ = [
    # Base
    "BaseCloudMetricsProvider",

    # Models
    "Resource",
    "Datapoint",
    "StatisticsQuery",

    # Exceptions
    "CloudProviderError",
    "DiscoveryError",
    "StatisticsQueryError",

    # Discovery
    "ResourceDiscovery",
    "dedupe_by_address",

    # AWS
    "AWSConfig",
    "AWSCloudMetricsProvider",
    "aws_config_from_env",
    "get_aioboto3_session",
]
