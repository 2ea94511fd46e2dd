"""
AWS Cloud Metrics Provider - ELB, RDS and CloudWatch adapter.

Endpoints used:
- elb:DescribeLoadBalancers - load balancer discovery
- rds:DescribeDBInstances - database instance discovery
- cloudwatch:GetMetricStatistics - per-metric statistics

Request-level timeouts are enforced by the client config; this
module adds no timeout layer of its own.
"""

import logging
from typing import Any, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from cloud_sources.aws_config import AWSConfig, get_aioboto3_session
from cloud_sources.base import BaseCloudMetricsProvider
from cloud_sources.exceptions import DiscoveryError, StatisticsQueryError
from cloud_sources.models import Datapoint, Resource, StatisticsQuery
from metric_catalog.models import ResourceType


logger = logging.getLogger(__name__)


class AWSCloudMetricsProvider(BaseCloudMetricsProvider):
    """
    AWS implementation of the cloud metrics provider.

    Discovery maps:
    - Classic load balancers: name=LoadBalancerName, address=DNSName
    - DB instances: name=DBInstanceIdentifier, address=Endpoint.Address
    """

    def __init__(
        self,
        config: Optional[AWSConfig] = None,
        session: Optional[aioboto3.Session] = None,
    ) -> None:
        self._config = config or AWSConfig()
        self._session = session or get_aioboto3_session(self._config)

    @property
    def name(self) -> str:
        return f"aws:{self._config.region}"

    def _client(self, service: str) -> Any:
        return self._session.client(service, **self._config.client_kwargs())

    async def list_resources(self, resource_type: ResourceType) -> list[Resource]:
        """List load balancers or DB instances."""
        try:
            if resource_type == ResourceType.LOAD_BALANCER:
                return await self._list_load_balancers()
            if resource_type == ResourceType.MANAGED_DATABASE:
                return await self._list_db_instances()
        except (ClientError, BotoCoreError) as e:
            raise DiscoveryError(
                message=f"Listing {resource_type.value} failed",
                provider_name=self.name,
                resource_type=resource_type.value,
                original_error=e,
            )
        raise DiscoveryError(
            message=f"Unsupported resource type: {resource_type.value}",
            provider_name=self.name,
            resource_type=resource_type.value,
        )

    async def _list_load_balancers(self) -> list[Resource]:
        resources = []
        async with self._client("elb") as elb:
            paginator = elb.get_paginator("describe_load_balancers")
            async for page in paginator.paginate():
                for lbd in page.get("LoadBalancerDescriptions", []):
                    resources.append(Resource(
                        name=lbd["LoadBalancerName"],
                        address=lbd["DNSName"],
                        resource_type=ResourceType.LOAD_BALANCER,
                    ))
        return resources

    async def _list_db_instances(self) -> list[Resource]:
        resources = []
        async with self._client("rds") as rds:
            paginator = rds.get_paginator("describe_db_instances")
            async for page in paginator.paginate():
                for instance in page.get("DBInstances", []):
                    identifier = instance["DBInstanceIdentifier"]
                    address = (instance.get("Endpoint") or {}).get("Address")
                    if not address:
                        # Instances still being created have no endpoint yet
                        logger.warning(
                            f"[{self.name}] DB instance {identifier} has no endpoint "
                            f"(status={instance.get('DBInstanceStatus', 'unknown')}), skipping"
                        )
                        continue
                    resources.append(Resource(
                        name=identifier,
                        address=address,
                        resource_type=ResourceType.MANAGED_DATABASE,
                    ))
        return resources

    async def query_statistics(self, query: StatisticsQuery) -> list[Datapoint]:
        """Run GetMetricStatistics for a single metric and dimension."""
        query.validate()
        try:
            async with self._client("cloudwatch") as cloudwatch:
                resp = await cloudwatch.get_metric_statistics(
                    Namespace=query.namespace,
                    MetricName=query.metric_name,
                    Dimensions=query.dimensions(),
                    StartTime=query.start_time,
                    EndTime=query.end_time,
                    Period=query.period_seconds,
                    Statistics=[query.statistic.value],
                )
        except ClientError as e:
            raise StatisticsQueryError(
                message=f"GetMetricStatistics failed for {query.metric_name}",
                provider_name=self.name,
                metric_name=query.metric_name,
                dimension_value=query.dimension_value,
                error_code=e.response.get("Error", {}).get("Code"),
                original_error=e,
            )
        except BotoCoreError as e:
            raise StatisticsQueryError(
                message=f"GetMetricStatistics failed for {query.metric_name}",
                provider_name=self.name,
                metric_name=query.metric_name,
                dimension_value=query.dimension_value,
                original_error=e,
            )

        return [
            Datapoint(
                timestamp=dp["Timestamp"],
                sum=dp.get("Sum"),
                average=dp.get("Average"),
            )
            for dp in resp.get("Datapoints", [])
        ]
