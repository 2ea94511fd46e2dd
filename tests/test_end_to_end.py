"""
End-to-end relay test.

Real catalog, discovery, reconciler, fetcher, poster and scheduler,
wired to in-memory provider and backend doubles.

Scenario:
    One load balancer "lb-1" at "lb-1.example.com", no backend host.
    Only RequestCount has a datapoint (Sum 57).
    After startup and one pass, host "h-42" exists and holds exactly
    one value: custom.elb.requestcount.RequestCount = 57.
"""

import logging
from datetime import datetime, timezone

import pytest

from cloud_sources import (
    BaseCloudMetricsProvider,
    Datapoint,
    Resource,
    ResourceDiscovery,
)
from core.clock import MockClock
from metric_catalog import ResourceType, build_default_catalog
from metrics_backend import BaseMetricsBackend, Host
from orchestrator.core import Scheduler
from orchestrator.models import SchedulerState
from relay.fetcher import MetricFetcher
from relay.poster import MetricPoster
from relay.reconciler import HostReconciler


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
SAMPLE_TIME = datetime(2024, 1, 1, 11, 59, tzinfo=timezone.utc)


# ============================================================
# DOUBLES
# ============================================================

class InMemoryProvider(BaseCloudMetricsProvider):
    """Provider serving a fixed resource list and datapoints per metric."""

    def __init__(self, resources, datapoints):
        self._resources = resources
        self._datapoints = datapoints
        self.queries = []

    @property
    def name(self) -> str:
        return "memory"

    async def list_resources(self, resource_type):
        return [
            Resource(r.name, r.address, r.resource_type)
            for r in self._resources
            if r.resource_type == resource_type
        ]

    async def query_statistics(self, query):
        query.validate()
        self.queries.append(query)
        return list(self._datapoints.get(query.metric_name, []))


class InMemoryBackend(BaseMetricsBackend):
    """Backend holding hosts and posted values in memory."""

    def __init__(self):
        self.hosts = {}
        self.posted = {}
        self.graphs = []
        self._next_id = 42

    @property
    def name(self) -> str:
        return "memory"

    async def find_hosts_by_name(self, address):
        return [h for h in self.hosts.values() if h.name == address]

    async def create_host(self, address):
        host_id = f"h-{self._next_id}"
        self._next_id += 1
        self.hosts[host_id] = Host(id=host_id, name=address)
        return host_id

    async def post_metric_values(self, host_id, values):
        self.posted.setdefault(host_id, []).extend(values)

    async def define_graphs(self, graphs):
        self.graphs.extend(graphs)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def provider():
    return InMemoryProvider(
        resources=[Resource("lb-1", "lb-1.example.com", ResourceType.LOAD_BALANCER)],
        datapoints={"RequestCount": [Datapoint(SAMPLE_TIME, sum=57.0)]},
    )


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def scheduler(provider, backend):
    clock = MockClock(NOW)
    catalog = build_default_catalog()
    return Scheduler(
        catalog=catalog,
        discovery=ResourceDiscovery(provider),
        reconciler=HostReconciler(backend),
        fetcher=MetricFetcher(provider, clock=clock),
        poster=MetricPoster(backend),
        backend=backend,
        tick_interval_seconds=60,
        clock=clock,
    )


# ============================================================
# TESTS
# ============================================================

class TestRelayEndToEnd:
    """Startup plus one pass against in-memory doubles."""

    @pytest.mark.asyncio
    async def test_single_pass(self, scheduler, backend, caplog):
        await scheduler.start()

        with caplog.at_level(logging.INFO, logger="relay.audit"):
            result = await scheduler.run_pass()

        assert list(backend.hosts) == ["h-42"]
        assert backend.hosts["h-42"].name == "lb-1.example.com"

        posted = backend.posted["h-42"]
        assert len(posted) == 1
        assert posted[0].name == "custom.elb.requestcount.RequestCount"
        assert posted[0].value == 57.0
        assert posted[0].timestamp == int(SAMPLE_TIME.timestamp())

        audit = [r for r in caplog.records if r.name == "relay.audit"]
        assert len(audit) == 1
        assert result.resources_posted == 1
        assert result.values_posted == 1

    @pytest.mark.asyncio
    async def test_queries_use_trailing_window(self, scheduler, provider):
        await scheduler.start()
        await scheduler.run_pass()

        request_count = [q for q in provider.queries if q.metric_name == "RequestCount"][0]
        assert request_count.namespace == "AWS/ELB"
        assert request_count.dimension_value == "lb-1"
        assert request_count.end_time == NOW
        assert (request_count.end_time - request_count.start_time).total_seconds() == 120

    @pytest.mark.asyncio
    async def test_second_pass_reuses_host(self, scheduler, backend):
        await scheduler.start()
        await scheduler.run_pass()
        await scheduler.run_pass()

        assert list(backend.hosts) == ["h-42"]
        assert len(backend.posted["h-42"]) == 2

    @pytest.mark.asyncio
    async def test_existing_host_found_not_created(self, scheduler, backend):
        backend.hosts["h-7"] = Host(id="h-7", name="lb-1.example.com")

        await scheduler.start()
        await scheduler.run_pass()

        assert list(backend.hosts) == ["h-7"]
        assert len(backend.posted["h-7"]) == 1

    @pytest.mark.asyncio
    async def test_graphs_registered_at_startup(self, scheduler, backend):
        await scheduler.start()

        assert scheduler.state == SchedulerState.RUNNING
        keys = {g.key for g in backend.graphs}
        assert "elb.requestcount" in keys
        assert "rds.cpu" in keys

    @pytest.mark.asyncio
    async def test_no_databases_is_not_an_error(self, scheduler, backend):
        await scheduler.start()
        result = await scheduler.run_pass()

        assert result.resources_total == 1
        assert result.resources_failed == 0
