"""
Orchestrator Package - Relay scheduling and process entry.

============================================================
PACKAGE OVERVIEW
============================================================
Controls startup, the periodic pass loop and shutdown.

============================================================
LIFECYCLE
============================================================

    IDLE ---start()---> RUNNING ---stop()---> STOPPED
      |                                          ^
      +-------------------stop()-----------------+

 start():     discovery + reconciliation, once
 each tick:   fetch + post for every known resource
 stop():      takes effect at the next pass boundary

============================================================
"""

from .models import PassResult, RelayConfig, SchedulerState
from .core import Scheduler, setup_logging
from .cli import build_config, build_scheduler, create_parser, main


__all__ = [
    # Models
    "PassResult",
    "RelayConfig",
    "SchedulerState",

    # Core
    "Scheduler",
    "setup_logging",

    # CLI
    "build_config",
    "build_scheduler",
    "create_parser",
    "main",
]
