"""
Status classification for the power monitor.

Turns the raw ``ups.status`` string into a PowerState and renders the
human-readable status shown by the presenter.
"""

from .client import UNKNOWN
from .models import PowerReading, PowerState

# OL = Online, OB = On Battery
STATUS_ONLINE = "OL"
STATUS_ON_BATTERY = "OB"

MODE_LABELS = {
    PowerState.ONLINE: "Online",
    PowerState.ON_BATTERY: "On battery",
}

CONNECTION_FAILED_TEXT = "Connection failed!\nCheck the connection or login credentials"


def classify_status(status: str) -> PowerState:
    """
    Map a ``ups.status`` value to a power state.

    Matching is a case-sensitive substring test, OL before OB, so
    composite values like ``OL CHRG`` or ``OB LB`` are recognised.
    """
    if status == UNKNOWN:
        return PowerState.DEGRADED
    if STATUS_ONLINE in status:
        return PowerState.ONLINE
    if STATUS_ON_BATTERY in status:
        return PowerState.ON_BATTERY
    return PowerState.DEGRADED


def format_status(ups_name: str, reading: PowerReading, state: PowerState) -> str:
    """Build the tooltip text for one tick."""
    if not reading.readable:
        return CONNECTION_FAILED_TEXT
    mode = MODE_LABELS.get(state, reading.status)
    return f"UPS: {ups_name}\nStatus: {mode}\nCharge: {reading.charge}%"
