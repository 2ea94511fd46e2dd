"""
Cloud Source Exceptions - Exception hierarchy for the cloud metrics provider.

Every provider failure is non-fatal to the relay: callers log it
and degrade (empty discovery, partial fetch).
"""

from datetime import datetime, timezone
from typing import Any, Optional


class CloudProviderError(Exception):
    """Base exception for all cloud provider errors."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider_name = provider_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider_name": self.provider_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider_name:
            parts.append(f"[provider={self.provider_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class DiscoveryError(CloudProviderError):
    """Listing resources of a type failed."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        resource_type: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, original_error, context)
        self.resource_type = resource_type

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["resource_type"] = self.resource_type
        return data


class StatisticsQueryError(CloudProviderError):
    """A time-series statistics query failed."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        metric_name: Optional[str] = None,
        dimension_value: Optional[str] = None,
        error_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, original_error, context)
        self.metric_name = metric_name
        self.dimension_value = dimension_value
        self.error_code = error_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "metric_name": self.metric_name,
            "dimension_value": self.dimension_value,
            "error_code": self.error_code,
        })
        return data

    def is_throttled(self) -> bool:
        """Check if the provider rejected the call for rate reasons."""
        return self.error_code in ("Throttling", "ThrottlingException", "RequestLimitExceeded")
