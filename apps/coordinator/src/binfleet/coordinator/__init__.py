"""binfleet Coordinator -- 协调引擎、刷新调度与 CLI"""

from .clock import CancellationToken, Clock, SystemClock
from .engine import CoordinationEngine, raw_to_profile
from .logging_config import setup_logging
from .scheduler import RefreshScheduler

__all__ = [
    "CoordinationEngine",
    "RefreshScheduler",
    "CancellationToken",
    "Clock",
    "SystemClock",
    "raw_to_profile",
    "setup_logging",
]
