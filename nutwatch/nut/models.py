"""
Data models for the power monitor.

This module defines the power states the monitor moves between and the
per-tick reading taken from the NUT server.
"""

from dataclasses import dataclass
from enum import Enum

from .client import UNKNOWN


class PowerState(str, Enum):
    """Power state derived from ``ups.status``."""
    CONNECTING = "Connecting"
    ONLINE = "Online"
    ON_BATTERY = "OnBattery"
    DEGRADED = "Degraded"


@dataclass(frozen=True)
class PowerReading:
    """The two variables read on every poll tick."""

    status: str
    charge: str

    @property
    def readable(self) -> bool:
        return self.status != UNKNOWN
