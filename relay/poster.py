"""
Metric Poster - Submits one resource's values to the backend.

Each submitted value is written to the `relay.audit` logger. Failed
batches are dropped: there is no retry and no buffering.
"""

import logging
from typing import Optional, Sequence

from metrics_backend.base import BaseMetricsBackend
from metrics_backend.exceptions import BackendError
from metrics_backend.models import MetricValue
from relay.models import PostOutcome


logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("relay.audit")


class MetricPoster:
    """Posts metric batches per host."""

    def __init__(self, backend: BaseMetricsBackend) -> None:
        self._backend = backend

    async def post(
        self,
        host_id: Optional[str],
        values: Sequence[MetricValue],
        resource_name: str = "",
    ) -> PostOutcome:
        """Submit values for a host as a single batch."""
        label = resource_name or host_id or "<unknown>"

        if not host_id:
            logger.info(f"Skipping post for {label}: no host bound")
            return PostOutcome.SKIPPED_UNBOUND

        if not values:
            logger.debug(f"Skipping post for {label}: no values this pass")
            return PostOutcome.SKIPPED_EMPTY

        try:
            await self._backend.post_metric_values(host_id, values)
        except BackendError as e:
            logger.error(f"Post failed for {label} (host={host_id}, {len(values)} value(s)): {e}")
            return PostOutcome.FAILED

        for value in values:
            audit_logger.info(f"{host_id} '{value}'")
        logger.info(f"Posted {len(values)} value(s) for {label} to host {host_id}")
        return PostOutcome.POSTED
