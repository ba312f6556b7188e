"""
NUT (Network UPS Tools) protocol client and power monitor.
"""

from nutwatch.nut.client import (
    UNKNOWN,
    NUTAuthError,
    NUTClient,
    NUTConnectError,
    NUTError,
    NUTIOError,
    NUTProtocolError,
)
from nutwatch.nut.models import PowerReading, PowerState
from nutwatch.nut.poller import PowerMonitor

__all__ = [
    "UNKNOWN",
    "NUTAuthError",
    "NUTClient",
    "NUTConnectError",
    "NUTError",
    "NUTIOError",
    "NUTProtocolError",
    "PowerMonitor",
    "PowerReading",
    "PowerState",
]
