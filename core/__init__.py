"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- exceptions: Relay exception hierarchy
"""

from core.clock import ClockFactory, ClockProtocol, MockClock, SystemClock
from core.exceptions import (
    ConfigurationError,
    HostBindingError,
    RelayError,
    StateTransitionError,
)


__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "RelayError",
    "ConfigurationError",
    "StateTransitionError",
    "HostBindingError",
]
