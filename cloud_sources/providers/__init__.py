"""
Providers package - Cloud metrics provider implementations.
"""

from cloud_sources.providers.aws import AWSCloudMetricsProvider


__all__ = [
    "AWSCloudMetricsProvider",
]
