"""
Host Reconciler - Binds each Resource to a backend host.

Lookup always precedes creation. When the backend reports several
hosts for one address, the most recently created one wins and a
warning lists every candidate; hosts without a creation time sort
last and otherwise keep backend order.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable

from cloud_sources.models import Resource
from core.exceptions import HostBindingError
from metrics_backend.base import BaseMetricsBackend
from metrics_backend.exceptions import BackendError
from metrics_backend.models import Host
from relay.models import ReconcileReport


logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def choose_host(hosts: list[Host]) -> Host:
    """Pick the most recently created host; stable for equal timestamps."""
    return sorted(hosts, key=lambda h: h.created_at or _EPOCH, reverse=True)[0]


class HostReconciler:
    """Maps resources to backend host ids, creating hosts as needed."""

    def __init__(self, backend: BaseMetricsBackend) -> None:
        self._backend = backend

    async def reconcile(self, resources: Iterable[Resource]) -> ReconcileReport:
        """
        Bind every unbound resource in place.

        Failures are logged per resource and never abort the run;
        resources left unbound are skipped by later stages.
        """
        report = ReconcileReport()
        # Addresses bound during this run, so duplicates reuse the same host
        bound_here: dict[str, str] = {}

        for resource in resources:
            if resource.is_bound:
                report.already_bound += 1
                continue

            if resource.address in bound_here:
                self._bind(resource, bound_here[resource.address], report)
                report.found += 1
                continue

            try:
                hosts = await self._backend.find_hosts_by_name(resource.address)
            except BackendError as e:
                logger.error(f"Host lookup failed for {resource.name} ({resource.address}): {e}")
                self._fail(resource, report)
                continue
            except Exception as e:
                logger.error(
                    f"Unexpected error looking up host for {resource.name} ({resource.address}): {e}",
                    exc_info=True,
                )
                self._fail(resource, report)
                continue

            if len(hosts) == 1:
                host = hosts[0]
                logger.info(f"Host Found: {host.id} -> {host.name}")
                if self._bind(resource, host.id, report):
                    report.found += 1
                    bound_here[resource.address] = host.id
                continue

            if len(hosts) > 1:
                host = choose_host(hosts)
                logger.warning(
                    f"Ambiguous host match for {resource.address}: "
                    f"candidates={[h.id for h in hosts]}, selected={host.id}"
                )
                report.ambiguous += 1
                if self._bind(resource, host.id, report):
                    report.found += 1
                    bound_here[resource.address] = host.id
                continue

            try:
                host_id = await self._backend.create_host(resource.address)
            except BackendError as e:
                logger.error(f"Host creation failed for {resource.name} ({resource.address}): {e}")
                self._fail(resource, report)
                continue
            except Exception as e:
                logger.error(
                    f"Unexpected error creating host for {resource.name} ({resource.address}): {e}",
                    exc_info=True,
                )
                self._fail(resource, report)
                continue

            if self._bind(resource, host_id, report):
                report.created += 1
                bound_here[resource.address] = host_id

        logger.info(f"Reconciliation complete: {report.to_dict()}")
        return report

    def _bind(self, resource: Resource, host_id: str, report: ReconcileReport) -> bool:
        try:
            resource.bind(host_id)
        except (HostBindingError, ValueError) as e:
            logger.error(f"Cannot bind {resource.name}: {e}")
            self._fail(resource, report)
            return False
        return True

    @staticmethod
    def _fail(resource: Resource, report: ReconcileReport) -> None:
        report.failed += 1
        report.failed_addresses.append(resource.address)
