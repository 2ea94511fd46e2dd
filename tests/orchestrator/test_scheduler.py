"""
Tests for the relay scheduler.

============================================================
PURPOSE
============================================================
- Lifecycle: IDLE -> RUNNING -> STOPPED, STOPPED is terminal
- Passes never overlap, even when one overruns the interval
- A stop request lets the in-flight pass finish
- Host bindings stay stable across passes and rediscovery

============================================================
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from cloud_sources import Resource
from core.clock import MockClock, SystemClock
from core.exceptions import StateTransitionError
from metric_catalog import ResourceType, build_default_catalog
from metrics_backend import BackendRequestError, MetricValue
from orchestrator.core import PROVIDER_CLIENT_LOGGERS, Scheduler, setup_logging
from orchestrator.models import SchedulerState
from relay.models import PostOutcome, ReconcileReport


# ============================================================
# FIXTURES
# ============================================================

def lb(name: str) -> Resource:
    return Resource(
        name=name,
        address=f"{name}.example.com",
        resource_type=ResourceType.LOAD_BALANCER,
    )


async def bind_all(resources):
    resources = list(resources)
    for resource in resources:
        resource.bind(f"h-{resource.name}")
    return ReconcileReport(created=len(resources))


@pytest.fixture
def discovery():
    mock = MagicMock()
    mock.discover_all = AsyncMock(
        return_value={ResourceType.LOAD_BALANCER: [lb("lb-1")]}
    )
    return mock


@pytest.fixture
def reconciler():
    mock = MagicMock()
    mock.reconcile = AsyncMock(side_effect=bind_all)
    return mock


@pytest.fixture
def fetcher():
    mock = MagicMock()
    mock.fetch = AsyncMock(
        return_value=[MetricValue("custom.elb.latency.Latency", 0.2, 1704067200)]
    )
    return mock


@pytest.fixture
def poster():
    mock = MagicMock()
    mock.post = AsyncMock(return_value=PostOutcome.POSTED)
    return mock


@pytest.fixture
def backend():
    mock = MagicMock()
    mock.define_graphs = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def make_scheduler(discovery, reconciler, fetcher, poster, backend):
    def _make(**kwargs):
        params = dict(
            catalog=build_default_catalog(),
            discovery=discovery,
            reconciler=reconciler,
            fetcher=fetcher,
            poster=poster,
            backend=backend,
            resource_types=[ResourceType.LOAD_BALANCER],
            tick_interval_seconds=0.01,
            clock=SystemClock(),
        )
        params.update(kwargs)
        return Scheduler(**params)
    return _make


@pytest.fixture
def scheduler(make_scheduler):
    return make_scheduler()


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    client_levels = {name: logging.getLogger(name).level for name in PROVIDER_CLIENT_LOGGERS}
    yield
    root.handlers = handlers
    root.setLevel(level)
    for name, client_level in client_levels.items():
        logging.getLogger(name).setLevel(client_level)


# ============================================================
# LIFECYCLE TESTS
# ============================================================

class TestLifecycle:
    """Tests for scheduler state transitions."""

    def test_initial_state(self, scheduler):
        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.resources == []
        assert scheduler.pass_count == 0

    def test_non_positive_interval_rejected(self, make_scheduler):
        with pytest.raises(ValueError):
            make_scheduler(tick_interval_seconds=0)

    @pytest.mark.asyncio
    async def test_start_discovers_and_reconciles(self, scheduler, discovery, reconciler):
        await scheduler.start()

        assert scheduler.state == SchedulerState.RUNNING
        assert [r.host_id for r in scheduler.resources] == ["h-lb-1"]
        discovery.discover_all.assert_awaited_once_with([ResourceType.LOAD_BALANCER])
        reconciler.reconcile.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_registers_graphs(self, scheduler, backend):
        await scheduler.start()

        graphs = list(backend.define_graphs.call_args.args[0])
        assert [g.key for g in graphs] == [
            "elb.hostcount", "elb.httpcode", "elb.latency", "elb.requestcount",
        ]

    @pytest.mark.asyncio
    async def test_graph_registration_failure_not_fatal(self, scheduler, backend):
        backend.define_graphs.side_effect = BackendRequestError(
            "HTTP 500", backend_name="mackerel", status_code=500,
        )

        await scheduler.start()

        assert scheduler.state == SchedulerState.RUNNING

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, scheduler):
        await scheduler.start()

        with pytest.raises(StateTransitionError):
            await scheduler.start()

    def test_stop_from_idle(self, scheduler):
        scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.stop_requested

    @pytest.mark.asyncio
    async def test_stopped_is_terminal(self, scheduler):
        scheduler.stop()

        with pytest.raises(StateTransitionError):
            await scheduler.start()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, scheduler):
        await scheduler.start()
        scheduler.stop()
        scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_during_startup(self, scheduler, discovery):
        async def discover_all(resource_types):
            scheduler.stop()
            return {ResourceType.LOAD_BALANCER: []}

        discovery.discover_all.side_effect = discover_all

        await scheduler.start()

        assert scheduler.state == SchedulerState.STOPPED
        await asyncio.wait_for(scheduler.run_forever(), timeout=1)
        assert scheduler.pass_count == 0


# ============================================================
# PASS TESTS
# ============================================================

class TestRunPass:
    """Tests for a single pass."""

    @pytest.mark.asyncio
    async def test_pass_posts_bound_resources(self, scheduler, fetcher, poster):
        await scheduler.start()

        result = await scheduler.run_pass()

        assert result.pass_number == 1
        assert result.resources_total == 1
        assert result.resources_posted == 1
        assert result.values_posted == 1
        fetcher.fetch.assert_awaited_once()
        poster.post.assert_awaited_once()
        assert poster.post.call_args.args[0] == "h-lb-1"

    @pytest.mark.asyncio
    async def test_unbound_resource_skips_fetch(
        self, scheduler, discovery, reconciler, fetcher, poster,
    ):
        discovery.discover_all.return_value = {ResourceType.LOAD_BALANCER: [lb("lb-1")]}
        reconciler.reconcile.side_effect = None
        reconciler.reconcile.return_value = ReconcileReport(failed=1)
        await scheduler.start()

        result = await scheduler.run_pass()

        assert result.resources_skipped == 1
        fetcher.fetch.assert_not_called()
        poster.post.assert_awaited_once_with(None, [], resource_name="lb-1")

    @pytest.mark.asyncio
    async def test_failed_post_counted(self, scheduler, poster):
        poster.post.return_value = PostOutcome.FAILED
        await scheduler.start()

        result = await scheduler.run_pass()

        assert result.resources_failed == 1
        assert result.resources_posted == 0

    @pytest.mark.asyncio
    async def test_resource_error_does_not_abort_pass(
        self, scheduler, discovery, fetcher, poster,
    ):
        discovery.discover_all.return_value = {
            ResourceType.LOAD_BALANCER: [lb("lb-1"), lb("lb-2")],
        }
        fetcher.fetch.side_effect = [RuntimeError("boom"), []]
        poster.post.return_value = PostOutcome.SKIPPED_EMPTY
        await scheduler.start()

        result = await scheduler.run_pass()

        assert result.resources_failed == 1
        assert result.resources_skipped == 1
        assert poster.post.await_count == 1

    @pytest.mark.asyncio
    async def test_host_ids_stable_across_passes(self, scheduler, poster):
        await scheduler.start()

        await scheduler.run_pass()
        await scheduler.run_pass()

        host_ids = [c.args[0] for c in poster.post.call_args_list]
        assert host_ids == ["h-lb-1", "h-lb-1"]
        assert scheduler.last_pass.pass_number == 2

    @pytest.mark.asyncio
    async def test_concurrent_passes_serialized(self, scheduler, fetcher):
        active = 0
        max_active = 0

        async def slow_fetch(resource, graphs):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.02)
            active -= 1
            return []

        fetcher.fetch.side_effect = slow_fetch
        await scheduler.start()

        await asyncio.gather(scheduler.run_pass(), scheduler.run_pass())

        assert max_active == 1
        assert scheduler.pass_count == 2


# ============================================================
# MAIN LOOP TESTS
# ============================================================

class TestRunForever:
    """Tests for the tick loop."""

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, scheduler, poster):
        async def post(host_id, values, resource_name=""):
            if poster.post.await_count == 3:
                scheduler.stop()
            return PostOutcome.POSTED

        poster.post.side_effect = post

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert scheduler.pass_count == 3
        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_pass_finish(self, scheduler, discovery, poster):
        discovery.discover_all.return_value = {
            ResourceType.LOAD_BALANCER: [lb("lb-1"), lb("lb-2")],
        }

        async def post(host_id, values, resource_name=""):
            scheduler.stop()
            return PostOutcome.POSTED

        poster.post.side_effect = post

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert scheduler.pass_count == 1
        assert poster.post.await_count == 2
        assert scheduler.last_pass.resources_posted == 2

    @pytest.mark.asyncio
    async def test_overrunning_pass_never_overlaps(self, scheduler, fetcher, poster):
        active = 0
        max_active = 0

        async def slow_fetch(resource, graphs):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.05)
            active -= 1
            return []

        async def post(host_id, values, resource_name=""):
            if poster.post.await_count == 3:
                scheduler.stop()
            return PostOutcome.SKIPPED_EMPTY

        fetcher.fetch.side_effect = slow_fetch
        poster.post.side_effect = post

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert max_active == 1
        assert scheduler.pass_count == 3

    @pytest.mark.asyncio
    async def test_overrun_drops_missed_ticks(self, make_scheduler, fetcher, poster, caplog):
        clock = MockClock()
        scheduler = make_scheduler(tick_interval_seconds=0.02, clock=clock)
        starts = []
        deadlines = []

        async def fetch(resource, graphs):
            starts.append(clock.monotonic())
            if len(starts) == 1:
                # First pass overruns by three and a half intervals
                clock.advance(0.07)
            return []

        async def post(host_id, values, resource_name=""):
            if poster.post.await_count == 3:
                scheduler.stop()
            return PostOutcome.SKIPPED_EMPTY

        wait_until = scheduler._wait_until

        async def record_wait(deadline):
            deadlines.append(deadline)
            return await wait_until(deadline)

        fetcher.fetch.side_effect = fetch
        poster.post.side_effect = post
        scheduler._wait_until = record_wait

        with caplog.at_level(logging.WARNING):
            await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert scheduler.pass_count == 3
        assert deadlines == pytest.approx([0.02, 0.06, 0.08])
        assert starts == pytest.approx([0.0, 0.07, 0.07])
        drops = [r for r in caplog.records if "dropped" in r.getMessage()]
        assert len(drops) == 1
        assert "dropped 1 tick(s)" in drops[0].getMessage()

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self, make_scheduler):
        scheduler = make_scheduler(tick_interval_seconds=30)

        task = asyncio.create_task(scheduler.run_forever())
        while scheduler.state != SchedulerState.RUNNING:
            await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert scheduler.pass_count == 0
        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_run_forever_after_stop_returns(self, scheduler, discovery):
        scheduler.stop()

        await asyncio.wait_for(scheduler.run_forever(), timeout=1)

        assert scheduler.pass_count == 0
        discovery.discover_all.assert_not_called()


# ============================================================
# REDISCOVERY TESTS
# ============================================================

class TestRediscovery:
    """Tests for periodic rediscovery."""

    @pytest.mark.asyncio
    async def test_rediscover_adds_new_and_keeps_bindings(
        self, scheduler, discovery, reconciler,
    ):
        await scheduler.start()
        original = scheduler.resources[0]
        discovery.discover_all.return_value = {
            ResourceType.LOAD_BALANCER: [lb("lb-1"), lb("lb-2")],
        }

        added = await scheduler.rediscover()

        assert added == 1
        assert scheduler.resources[0] is original
        assert [r.host_id for r in scheduler.resources] == ["h-lb-1", "h-lb-2"]
        second_call = reconciler.reconcile.await_args_list[1].args[0]
        assert [r.name for r in second_call] == ["lb-2"]

    @pytest.mark.asyncio
    async def test_rediscovery_retries_unbound(self, scheduler, discovery, reconciler):
        reconciler.reconcile.side_effect = None
        reconciler.reconcile.return_value = ReconcileReport(failed=1)
        await scheduler.start()
        assert not scheduler.resources[0].is_bound

        reconciler.reconcile.side_effect = bind_all
        await scheduler.rediscover()

        assert scheduler.resources[0].host_id == "h-lb-1"
        assert len(scheduler.resources) == 1

    @pytest.mark.asyncio
    async def test_loop_rediscovers_when_due(self, make_scheduler, discovery, poster):
        scheduler = make_scheduler(rediscovery_interval_seconds=0.001)

        async def post(host_id, values, resource_name=""):
            if poster.post.await_count == 2:
                scheduler.stop()
            return PostOutcome.POSTED

        poster.post.side_effect = post

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert discovery.discover_all.await_count >= 2


# ============================================================
# LOGGING SETUP TESTS
# ============================================================

class TestSetupLogging:
    """Tests for setup_logging."""

    def test_debug_raises_client_loggers(self, restore_logging):
        setup_logging(level="INFO", debug=True)

        for name in PROVIDER_CLIENT_LOGGERS:
            assert logging.getLogger(name).level == logging.DEBUG

    def test_client_loggers_quiet_by_default(self, restore_logging):
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_json_format(self, restore_logging):
        setup_logging(level="INFO", log_format="json")

        formatter = logging.getLogger().handlers[0].formatter
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        assert '"message": "hello"' in formatter.format(record)
