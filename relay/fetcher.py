"""
Metric Fetcher - Latest value per catalog metric for one resource.

For every graph and metric in the resource type's table, queries a
trailing window and keeps the newest datapoint. A failed query ends
the fetch early; values gathered before it are still returned.
"""

import logging
from typing import Mapping, Optional, Sequence

from cloud_sources.base import BaseCloudMetricsProvider
from cloud_sources.exceptions import CloudProviderError
from cloud_sources.models import Datapoint, Resource, StatisticsQuery
from core.clock import ClockFactory, ClockProtocol
from metric_catalog.models import GraphDefinition, MetricDefinition, Statistic
from metrics_backend.models import MetricValue


logger = logging.getLogger(__name__)


def select_latest(
    datapoints: Sequence[Datapoint],
    statistic: Statistic,
) -> Optional[tuple[int, float]]:
    """
    Return (unix time, value) of the newest datapoint, or None.

    Equal timestamps keep the first datapoint scanned. A newest
    datapoint missing the requested statistic yields None.
    """
    latest: Optional[Datapoint] = None
    for dp in datapoints:
        if latest is None or dp.unix_time > latest.unix_time:
            latest = dp
    if latest is None:
        return None
    value = latest.value_for(statistic)
    if value is None:
        return None
    return latest.unix_time, float(value)


class MetricFetcher:
    """Queries the provider for every metric of a resource's catalog."""

    DEFAULT_WINDOW_SECONDS = 120
    DEFAULT_PERIOD_SECONDS = 60

    def __init__(
        self,
        provider: BaseCloudMetricsProvider,
        clock: Optional[ClockProtocol] = None,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        period_seconds: int = DEFAULT_PERIOD_SECONDS,
    ) -> None:
        self._provider = provider
        self._clock = clock or ClockFactory.get_clock()
        self._window_seconds = window_seconds
        self._period_seconds = period_seconds

    def build_query(
        self,
        resource: Resource,
        metric: MetricDefinition,
    ) -> StatisticsQuery:
        """Build the statistics query for one metric of one resource."""
        start, end = self._clock.window(self._window_seconds)
        return StatisticsQuery(
            metric_name=metric.name,
            namespace=resource.resource_type.namespace,
            dimension_name=resource.resource_type.dimension_name,
            dimension_value=resource.dimension_value,
            start_time=start,
            end_time=end,
            statistic=metric.effective_statistic,
            period_seconds=self._period_seconds,
        )

    async def fetch(
        self,
        resource: Resource,
        graphs: Mapping[str, GraphDefinition],
    ) -> list[MetricValue]:
        """
        Fetch the latest value of every metric in the graphs.

        Never raises: on the first failing query, logs and returns
        what was accumulated so far.
        """
        values: list[MetricValue] = []

        for graph in graphs.values():
            for metric in graph.metrics:
                query = self.build_query(resource, metric)
                try:
                    datapoints = await self._provider.query_statistics(query)
                except CloudProviderError as e:
                    logger.error(
                        f"Query failed for {resource.name} {metric.name}: {e} "
                        f"(returning {len(values)} value(s))"
                    )
                    return values
                except Exception as e:
                    logger.error(
                        f"Unexpected error querying {resource.name} {metric.name}: {e} "
                        f"(returning {len(values)} value(s))",
                        exc_info=True,
                    )
                    return values

                selected = select_latest(datapoints, query.statistic)
                if selected is None:
                    logger.debug(f"No datapoints for {resource.name} {metric.name}")
                    continue

                timestamp, value = selected
                values.append(MetricValue(
                    name=graph.metric_name(metric),
                    value=value,
                    timestamp=timestamp,
                ))

        return values
