"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
The relay scheduler.

- Discovers and reconciles resources once at startup
- Runs one fetch-and-post pass per tick, resource type by type
- Never runs two passes at the same time
- Stops cooperatively on SIGINT/SIGTERM at a pass boundary

============================================================
TICK SEMANTICS
============================================================
Ticks sit on a fixed monotonic grid, the first one interval after
startup. When a pass overruns, one pending tick fires immediately
after it and every further missed tick is dropped.

============================================================
"""

import asyncio
import json
import logging
import signal
import sys
from typing import Dict, Iterable, List, Optional

from cloud_sources.discovery import ResourceDiscovery
from cloud_sources.models import Resource
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import StateTransitionError
from metric_catalog.catalog import MetricCatalog
from metric_catalog.models import ResourceType
from metrics_backend.base import BaseMetricsBackend
from metrics_backend.exceptions import BackendError
from relay.fetcher import MetricFetcher
from relay.models import PostOutcome
from relay.poster import MetricPoster
from relay.reconciler import HostReconciler

from .models import PassResult, SchedulerState


PROVIDER_CLIENT_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "urllib3")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    debug: bool = False,
) -> logging.Logger:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        debug: Raise provider client loggers to DEBUG

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    client_level = logging.DEBUG if debug else logging.WARNING
    for name in PROVIDER_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    return logging.getLogger("orchestrator")


# ============================================================
# SCHEDULER
# ============================================================

class Scheduler:
    """
    Drives discovery, reconciliation and periodic passes.

    All work runs sequentially in the calling task. The only shared
    mutable state is Resource.host_id, written during reconciliation.
    """

    def __init__(
        self,
        catalog: MetricCatalog,
        discovery: ResourceDiscovery,
        reconciler: HostReconciler,
        fetcher: MetricFetcher,
        poster: MetricPoster,
        backend: Optional[BaseMetricsBackend] = None,
        resource_types: Optional[Iterable[ResourceType]] = None,
        tick_interval_seconds: float = 60.0,
        rediscovery_interval_seconds: float = 0.0,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize scheduler.

        Args:
            catalog: Metric catalog, built once at startup
            backend: Receives graph definitions at startup when given
            resource_types: Types to poll (default: every catalog type)
            tick_interval_seconds: Interval between passes
            rediscovery_interval_seconds: Re-list cadence, 0 disables
        """
        if tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")

        self._catalog = catalog
        self._discovery = discovery
        self._reconciler = reconciler
        self._fetcher = fetcher
        self._poster = poster
        self._backend = backend
        self._resource_types = list(resource_types or catalog.resource_types())
        self._tick_interval = tick_interval_seconds
        self._rediscovery_interval = rediscovery_interval_seconds
        self._clock = clock or ClockFactory.get_clock()

        self._state = SchedulerState.IDLE
        self._resources: Dict[ResourceType, List[Resource]] = {}
        self._pass_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._pass_count = 0
        self._last_pass: Optional[PassResult] = None
        self._next_rediscovery: Optional[float] = None
        self._loop_active = False
        self._signals_installed = False

        self._logger = logging.getLogger("orchestrator")

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def resources(self) -> List[Resource]:
        """Every known resource, in resource-type order."""
        return [r for rt in self._resource_types for r in self._resources.get(rt, [])]

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def last_pass(self) -> Optional[PassResult]:
        return self._last_pass

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def _transition(self, target: SchedulerState) -> None:
        if not self._state.can_transition_to(target):
            raise StateTransitionError(
                message=f"Cannot move from {self._state.value} to {target.value}",
                from_state=self._state.value,
                to_state=target.value,
            )
        self._logger.info(f"Scheduler {self._state.value} -> {target.value}")
        self._state = target

    async def start(self) -> None:
        """
        Discover and reconcile once, then enter RUNNING.

        Discovery and reconciliation failures degrade to fewer (or
        unbound) resources; they never prevent startup.
        """
        if self._state != SchedulerState.IDLE:
            raise StateTransitionError(
                message=f"start() called in state {self._state.value}",
                from_state=self._state.value,
                to_state=SchedulerState.RUNNING.value,
            )

        self._logger.info("=== RELAY STARTUP ===")
        added = await self._discover_and_reconcile()
        await self._register_graphs()

        if self._stop_event.is_set():
            self._logger.info("Stop requested during startup")
            return

        if self._rediscovery_interval > 0:
            self._next_rediscovery = self._clock.monotonic() + self._rediscovery_interval

        self._transition(SchedulerState.RUNNING)
        self._logger.info(
            f"Startup complete | resources={added} "
            f"bound={sum(1 for r in self.resources if r.is_bound)}"
        )

    def stop(self) -> None:
        """
        Request a stop.

        An in-flight pass finishes; no new pass begins.
        """
        if not self._stop_event.is_set():
            self._logger.info("Stop requested")
        self._stop_event.set()
        # A running main loop performs the transition itself on exit
        if self._state != SchedulerState.STOPPED and not self._loop_active:
            self._transition(SchedulerState.STOPPED)

    # --------------------------------------------------------
    # Discovery
    # --------------------------------------------------------

    async def _discover_and_reconcile(self) -> int:
        discovered = await self._discovery.discover_all(self._resource_types)
        known = {r.address for r in self.resources}
        added = 0

        for resource_type, resources in discovered.items():
            bucket = self._resources.setdefault(resource_type, [])
            for resource in resources:
                if resource.address in known:
                    continue
                known.add(resource.address)
                bucket.append(resource)
                added += 1

        unbound = [r for r in self.resources if not r.is_bound]
        if unbound:
            await self._reconciler.reconcile(unbound)
        return added

    async def rediscover(self) -> int:
        """
        Re-list resources and bind newly seen ones.

        Existing resources and their bindings are kept; previously
        unbound resources get another reconciliation attempt.

        Returns:
            Number of resources added
        """
        async with self._pass_lock:
            added = await self._discover_and_reconcile()
        self._logger.info(f"Rediscovery complete | added={added} total={len(self.resources)}")
        return added

    async def _register_graphs(self) -> None:
        if self._backend is None:
            return
        graphs = [
            graph
            for resource_type in self._resource_types
            for graph in self._catalog.graphs_for(resource_type).values()
        ]
        try:
            await self._backend.define_graphs(graphs)
        except BackendError as e:
            self._logger.error(f"Graph definition registration failed: {e}")

    # --------------------------------------------------------
    # Passes
    # --------------------------------------------------------

    async def run_pass(self) -> PassResult:
        """
        Fetch and post for every known resource.

        Passes are serialized: a second caller waits for the first
        pass to finish.
        """
        async with self._pass_lock:
            self._pass_count += 1
            result = PassResult(pass_number=self._pass_count, started_at=self._clock.now())

            for resource_type in self._resource_types:
                graphs = self._catalog.graphs_for(resource_type)
                for resource in self._resources.get(resource_type, []):
                    result.resources_total += 1
                    await self._process_resource(resource, graphs, result)

            result.completed_at = self._clock.now()
            self._last_pass = result
            self._logger.info(f"Pass complete | {result.to_dict()}")
            return result

    async def _process_resource(self, resource, graphs, result: PassResult) -> None:
        try:
            if not resource.is_bound:
                await self._poster.post(None, [], resource_name=resource.name)
                result.resources_skipped += 1
                return

            values = await self._fetcher.fetch(resource, graphs)
            outcome = await self._poster.post(resource.host_id, values, resource_name=resource.name)
        except Exception as e:
            self._logger.error(f"Pass error for {resource.name}: {e}", exc_info=True)
            result.resources_failed += 1
            return

        if outcome == PostOutcome.POSTED:
            result.resources_posted += 1
            result.values_posted += len(values)
        elif outcome == PostOutcome.FAILED:
            result.resources_failed += 1
        else:
            result.resources_skipped += 1

    # --------------------------------------------------------
    # Main Loop
    # --------------------------------------------------------

    async def run_forever(self, handle_signals: bool = False) -> None:
        """
        Run passes on every tick until stop() is called.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers calling stop()
        """
        if self._state == SchedulerState.IDLE:
            await self.start()
        if self._state == SchedulerState.STOPPED:
            return

        if handle_signals:
            self._install_signal_handlers()

        self._logger.info(f"Starting main loop | interval={self._tick_interval}s")
        next_tick = self._clock.monotonic() + self._tick_interval
        self._loop_active = True

        try:
            while not self._stop_event.is_set():
                if await self._wait_until(next_tick):
                    break

                await self.run_pass()

                next_tick += self._tick_interval
                now = self._clock.monotonic()
                if now >= next_tick:
                    dropped = int((now - next_tick) // self._tick_interval)
                    if dropped:
                        self._logger.warning(
                            f"Pass {self._pass_count} overran the interval; dropped {dropped} tick(s)"
                        )
                        next_tick += dropped * self._tick_interval

                if self._rediscovery_due() and not self._stop_event.is_set():
                    await self.rediscover()
                    self._next_rediscovery = self._clock.monotonic() + self._rediscovery_interval
        finally:
            self._loop_active = False
            if self._signals_installed:
                self._restore_signal_handlers()
            if self._state != SchedulerState.STOPPED:
                self._transition(SchedulerState.STOPPED)
            self._logger.info(f"=== RELAY STOPPED after {self._pass_count} pass(es) ===")

    def _rediscovery_due(self) -> bool:
        if self._next_rediscovery is None:
            return False
        return self._clock.monotonic() >= self._next_rediscovery

    async def _wait_until(self, deadline: float) -> bool:
        """Wait for the deadline; return True if a stop was requested."""
        delay = deadline - self._clock.monotonic()
        if delay <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return self._stop_event.is_set()
        return True

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, self._signal_handler)
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._signal_handler, sig, None)
        self._signals_installed = True

    def _restore_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
        self._signals_installed = False

    def _signal_handler(self, signum, frame) -> None:
        self._logger.info(f"Received signal {signum}")
        self.stop()
