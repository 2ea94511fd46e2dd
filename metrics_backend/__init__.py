"""
Metrics Backend Package - Host records and custom metric ingestion.

Quick Start:
    from metrics_backend import MackerelBackend

    async def post():
        async with MackerelBackend(api_key="...") as backend:
            hosts = await backend.find_hosts_by_name("lb-1.example.com")
"""

from metrics_backend.base import BaseMetricsBackend
from metrics_backend.exceptions import (
    AuthenticationError,
    BackendError,
    BackendRateLimitError,
    BackendRequestError,
    InvalidResponseError,
)
from metrics_backend.mackerel import MackerelBackend
from metrics_backend.models import Host, MetricValue


__all__ = [
    # Base
    "BaseMetricsBackend",

    # Models
    "Host",
    "MetricValue",

    # Exceptions
    "BackendError",
    "BackendRequestError",
    "AuthenticationError",
    "BackendRateLimitError",
    "InvalidResponseError",

    # Implementations
    "MackerelBackend",
]
