"""
Shutdown handling for nutwatch.

Provides the deferred shutdown countdown and the local host shutdown
executor it drives.
"""

from nutwatch.shutdown.executor import HostShutdownExecutor, ShutdownResult, ShutdownStatus
from nutwatch.shutdown.scheduler import ShutdownScheduler, TimerState

__all__ = [
    "HostShutdownExecutor",
    "ShutdownResult",
    "ShutdownStatus",
    "ShutdownScheduler",
    "TimerState",
]
