"""
Relay Package - Reconcile, fetch and post stages.

Data flow:
    ResourceDiscovery -> HostReconciler -> [per pass] MetricFetcher -> MetricPoster
"""

from relay.fetcher import MetricFetcher, select_latest
from relay.models import PostOutcome, ReconcileReport
from relay.poster import MetricPoster
from relay.reconciler import HostReconciler, choose_host


__all__ = [
    "HostReconciler",
    "choose_host",
    "MetricFetcher",
    "select_latest",
    "MetricPoster",
    "PostOutcome",
    "ReconcileReport",
]
