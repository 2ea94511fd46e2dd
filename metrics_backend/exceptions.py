"""
Metrics Backend Exceptions - Exception hierarchy for host and metric APIs.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class BackendError(Exception):
    """Base exception for all metrics backend errors."""

    def __init__(
        self,
        message: str,
        backend_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.backend_name = backend_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "backend_name": self.backend_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.backend_name:
            parts.append(f"[backend={self.backend_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class BackendRequestError(BackendError):
    """HTTP or transport failure talking to the backend."""

    def __init__(
        self,
        message: str,
        backend_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, backend_name, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class AuthenticationError(BackendRequestError):
    """API key rejected (401/403)."""


class BackendRateLimitError(BackendRequestError):
    """Backend rate limit exceeded (429)."""

    def __init__(
        self,
        message: str,
        backend_name: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        request_url: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            backend_name,
            status_code=429,
            request_url=request_url,
            context=context,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class InvalidResponseError(BackendError):
    """Backend answered 2xx with a body the client cannot interpret."""
