"""
Metric Catalog - Static per-resource-type graph tables.

Load balancer counters:
http://docs.aws.amazon.com/AmazonCloudWatch/latest/DeveloperGuide/elb-metricscollected.html

Database counters:
http://docs.aws.amazon.com/AmazonCloudWatch/latest/DeveloperGuide/rds-metricscollected.html
"""

import logging
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from metric_catalog.models import (
    GraphDefinition,
    MetricDefinition,
    ResourceType,
    Statistic,
)


logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Invalid catalog construction (e.g. duplicate graph key)."""


def _graph(
    key: str,
    label: str,
    unit: str,
    *metrics: MetricDefinition,
) -> GraphDefinition:
    return GraphDefinition(key=key, label=label, unit=unit, metrics=tuple(metrics))


LOAD_BALANCER_GRAPHS: tuple[GraphDefinition, ...] = (
    _graph(
        "elb.hostcount", "Host Count", "integer",
        MetricDefinition("HealthyHostCount", "Healthy Host Count"),
        MetricDefinition("UnHealthyHostCount", "UnHealthy Host Count"),
    ),
    _graph(
        "elb.httpcode", "HTTP Code Count", "integer",
        MetricDefinition("HTTPCode_Backend_2XX", "Backend 2XX", Statistic.SUM),
        MetricDefinition("HTTPCode_Backend_3XX", "Backend 3XX", Statistic.SUM),
        MetricDefinition("HTTPCode_Backend_4XX", "Backend 4XX", Statistic.SUM),
        MetricDefinition("HTTPCode_Backend_5XX", "Backend 5XX", Statistic.SUM),
        MetricDefinition("HTTPCode_ELB_4XX", "ELB 4XX", Statistic.SUM),
        MetricDefinition("HTTPCode_ELB_5XX", "ELB 5XX", Statistic.SUM),
    ),
    _graph(
        "elb.latency", "Latency", "float",
        MetricDefinition("Latency", "Latency"),
    ),
    _graph(
        "elb.requestcount", "Request Count", "integer",
        MetricDefinition("RequestCount", "Request Count", Statistic.SUM),
    ),
)


DATABASE_GRAPHS: tuple[GraphDefinition, ...] = (
    _graph(
        "rds.cpu", "RDS CPU Utilization", "percentage",
        MetricDefinition("CPUUtilization", "CPU Utilization"),
    ),
    _graph(
        "rds.cpucredit", "RDS CPU Credit", "float",
        MetricDefinition("CPUCreditUsage", "Usage"),
        MetricDefinition("CPUCreditBalance", "Balance"),
    ),
    _graph(
        "rds.memory", "RDS Memory", "bytes",
        MetricDefinition("FreeableMemory", "Free"),
        MetricDefinition("SwapUsage", "Swap Usage"),
    ),
    _graph(
        "rds.network", "RDS Network", "bytes/sec",
        MetricDefinition("NetworkReceiveThroughput", "Receive"),
        MetricDefinition("NetworkTransmitThroughput", "Transmit"),
    ),
    _graph(
        "rds.binlogdiskusage", "RDS BinLog Disk Usage", "bytes",
        MetricDefinition("BinLogDiskUsage", "Usage"),
    ),
    _graph(
        "rds.databaseconnections", "RDS Connections", "integer",
        MetricDefinition("DatabaseConnections", "Connections"),
    ),
    _graph(
        "rds.diskiops", "RDS Disk IOPS", "iops",
        MetricDefinition("ReadIOPS", "Read"),
        MetricDefinition("WriteIOPS", "Write"),
    ),
    _graph(
        "rds.diskqueue", "RDS Disk Queue", "float",
        MetricDefinition("DiskQueueDepth", "Depth"),
    ),
    _graph(
        "rds.disk", "RDS Free Storage Space", "bytes",
        MetricDefinition("FreeStorageSpace", "Free Space"),
    ),
    _graph(
        "rds.replicalag", "RDS Replica Lag", "seconds",
        MetricDefinition("ReplicaLag", "Lag"),
    ),
    _graph(
        "rds.disklatency", "RDS Disk Latency", "float",
        MetricDefinition("ReadLatency", "Read"),
        MetricDefinition("WriteLatency", "Write"),
    ),
    _graph(
        "rds.diskthroughput", "RDS Disk Throughput", "bytes/sec",
        MetricDefinition("ReadThroughput", "Read"),
        MetricDefinition("WriteThroughput", "Write"),
    ),
)


class MetricCatalog:
    """
    Immutable mapping of resource type -> graph key -> GraphDefinition.

    Graph keys must be unique across every resource type, since they
    prefix the metric names posted to the backend.
    """

    def __init__(
        self,
        tables: Mapping[ResourceType, Iterable[GraphDefinition]],
    ) -> None:
        seen: dict[str, ResourceType] = {}
        built: dict[ResourceType, Mapping[str, GraphDefinition]] = {}

        for resource_type, graphs in tables.items():
            by_key: dict[str, GraphDefinition] = {}
            for graph in graphs:
                if graph.key in seen:
                    raise CatalogError(
                        f"Duplicate graph key {graph.key!r} "
                        f"({seen[graph.key].value} and {resource_type.value})"
                    )
                if not graph.metrics:
                    raise CatalogError(f"Graph {graph.key!r} has no metrics")
                seen[graph.key] = resource_type
                by_key[graph.key] = graph
            built[resource_type] = MappingProxyType(by_key)

        self._tables: Mapping[ResourceType, Mapping[str, GraphDefinition]] = (
            MappingProxyType(built)
        )

    def graphs_for(self, resource_type: ResourceType) -> Mapping[str, GraphDefinition]:
        """Return the read-only graph table for a resource type."""
        return self._tables.get(resource_type, MappingProxyType({}))

    def resource_types(self) -> list[ResourceType]:
        """Resource types that have a table, in declaration order."""
        return list(self._tables.keys())

    def all_graphs(self) -> Iterator[GraphDefinition]:
        """Iterate every graph across all resource types."""
        for table in self._tables.values():
            yield from table.values()

    def get_graph(self, key: str) -> Optional[GraphDefinition]:
        """Look up a graph by its globally unique key."""
        for table in self._tables.values():
            if key in table:
                return table[key]
        return None

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._tables

    def __len__(self) -> int:
        return sum(len(table) for table in self._tables.values())


def build_default_catalog() -> MetricCatalog:
    """Assemble the catalog for every supported resource type."""
    catalog = MetricCatalog({
        ResourceType.LOAD_BALANCER: LOAD_BALANCER_GRAPHS,
        ResourceType.MANAGED_DATABASE: DATABASE_GRAPHS,
    })
    logger.debug(f"Metric catalog built with {len(catalog)} graphs")
    return catalog
