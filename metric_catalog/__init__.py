"""
Metric Catalog Package - Declarative metric tables per resource type.

Quick Start:
    from metric_catalog import build_default_catalog, ResourceType

    catalog = build_default_catalog()
    for key, graph in catalog.graphs_for(ResourceType.LOAD_BALANCER).items():
        print(key, [m.name for m in graph.metrics])
"""

from metric_catalog.catalog import (
    DATABASE_GRAPHS,
    LOAD_BALANCER_GRAPHS,
    CatalogError,
    MetricCatalog,
    build_default_catalog,
)
from metric_catalog.models import (
    GraphDefinition,
    MetricDefinition,
    ResourceType,
    Statistic,
)


__all__ = [
    # Models
    "GraphDefinition",
    "MetricDefinition",
    "ResourceType",
    "Statistic",

    # Catalog
    "MetricCatalog",
    "CatalogError",
    "build_default_catalog",
    "LOAD_BALANCER_GRAPHS",
    "DATABASE_GRAPHS",
]
