"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the relay-level exception hierarchy.

Provider and backend failures have their own hierarchies
(cloud_sources.exceptions, metrics_backend.exceptions); this
module covers configuration and lifecycle errors.

============================================================
EXCEPTION HIERARCHY
============================================================
RelayError (base)
├── ConfigurationError
├── StateTransitionError
└── HostBindingError

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# BASE EXCEPTION
# ============================================================

class RelayError(Exception):
    """
    Base exception for relay errors.

    All exceptions carry:
    - context: for debugging
    - cause: the wrapped exception, if any
    - timestamp: when the error occurred
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"{type(self).__name__}: {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(RelayError):
    """Error in relay configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context, **kwargs)
        self.config_key = config_key


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class StateTransitionError(RelayError):
    """Invalid scheduler state transition."""

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        super().__init__(message, context=context, **kwargs)
        self.from_state = from_state
        self.to_state = to_state


class HostBindingError(RelayError):
    """Attempt to rebind a resource that already has a host id."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        bound_host_id: Optional[str] = None,
        requested_host_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context.update({
            "address": address,
            "bound_host_id": bound_host_id,
            "requested_host_id": requested_host_id,
        })
        super().__init__(message, context=context, **kwargs)
        self.address = address
        self.bound_host_id = bound_host_id
        self.requested_host_id = requested_host_id


__all__ = [
    "RelayError",
    "ConfigurationError",
    "StateTransitionError",
    "HostBindingError",
]
