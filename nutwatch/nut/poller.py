"""
Polling loop and power-state machine.

This module contains the PowerMonitor class, which polls a NUT server for
``ups.status`` and ``battery.charge``, tracks the resulting power state, and
arms or cancels the shutdown countdown when that state changes.
"""

import asyncio
import logging
from typing import Optional

from ..config import MonitorConfig
from ..core.ports import Notifier, Presenter
from ..shutdown.scheduler import ShutdownScheduler
from .client import NUTAuthError, NUTClient, NUTConnectError
from .events import classify_status, format_status
from .models import PowerReading, PowerState

logger = logging.getLogger(__name__)

VAR_STATUS = "ups.status"
VAR_CHARGE = "battery.charge"


class PowerMonitor:
    """
    Polls one UPS and reacts to power state changes.
    """

    def __init__(
        self,
        config: MonitorConfig,
        presenter: Presenter,
        notifier: Notifier,
        scheduler: ShutdownScheduler,
        client: Optional[NUTClient] = None,
    ):
        """
        Initialize the power monitor.

        Args:
            config: Configuration snapshot for this session.
            presenter: Status display.
            notifier: User alerts.
            scheduler: The shutdown countdown driven by state changes.
            client: NUT client; one is built from the config if omitted.
        """
        self.config = config
        self.presenter = presenter
        self.notifier = notifier
        self.scheduler = scheduler
        self.client = client or NUTClient(config.host, config.port)
        self.state = PowerState.CONNECTING
        self.last_reading: Optional[PowerReading] = None
        self.ticks = 0

    async def start(self) -> None:
        """
        Connect and log in.

        Raises:
            NUTConnectError: If upsd cannot be reached.
            NUTAuthError: If the login is rejected. The session is unusable
                in that case, same as a failed connect.
        """
        self.presenter.set_tooltip(f"Connecting to {self.config.address}...")
        try:
            await self.client.connect()
        except NUTConnectError as e:
            logger.error(f"Failed to connect to NUT server: {e}")
            self._report_fatal(f"Cannot reach NUT server {self.config.address}")
            raise

        try:
            await self.client.authenticate(self.config.user, self.config.password)
        except NUTAuthError as e:
            logger.error(f"Login to NUT server failed: {e}")
            self._report_fatal(f"Login as '{self.config.user}' was rejected by {self.config.address}")
            await self.client.close()
            raise

    async def run(self) -> None:
        """Start the session and poll until the task is cancelled."""
        await self.start()
        logger.info(f"Monitoring UPS '{self.config.ups_name}' every {self.config.poll_interval} ms")
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("An unexpected error occurred in the polling loop.")
            await asyncio.sleep(self.config.poll_interval / 1000.0)

    async def poll_once(self) -> PowerState:
        """
        Run one tick: read, classify, react to a change, update the display.

        Returns:
            The power state after this tick.
        """
        ups_name = self.config.ups_name
        reading = PowerReading(
            status=await self.client.get_var(ups_name, VAR_STATUS),
            charge=await self.client.get_var(ups_name, VAR_CHARGE),
        )
        self.ticks += 1
        self.last_reading = reading

        new_state = classify_status(reading.status)
        if new_state != self.state:
            previous = self.state
            self.state = new_state
            logger.info(f"Power state changed: {previous.value} -> {new_state.value} (status={reading.status!r})")
            await self._on_transition(new_state, reading)

        self.presenter.set_tooltip(format_status(ups_name, reading, new_state))
        return new_state

    async def close(self) -> None:
        """Drop a pending shutdown and disconnect."""
        await self.scheduler.cancel()
        await self.client.close()

    async def _on_transition(self, state: PowerState, reading: PowerReading) -> None:
        if state == PowerState.ONLINE:
            await self.scheduler.cancel()
            self.presenter.set_connected()
            self.notifier.notify("Power restored", f"UPS {self.config.ups_name} is back on mains power")

        elif state == PowerState.ON_BATTERY:
            seconds = self.config.shutdown_delay / 1000.0
            await self.scheduler.arm(self.config.shutdown_delay, self._on_shutdown)
            self.presenter.set_error()
            self.notifier.notify(
                "Power failure",
                f"UPS {self.config.ups_name} is on battery ({reading.charge}%), "
                f"shutdown in {seconds:g} seconds",
            )

        elif state == PowerState.DEGRADED:
            # Pending countdown keeps running
            self.presenter.set_error()
            self.notifier.notify(
                "UPS connection problem",
                f"Status of UPS {self.config.ups_name} could not be read",
            )

    async def _on_shutdown(self) -> None:
        self.presenter.set_error()
        self.presenter.set_tooltip(f"UPS: {self.config.ups_name}\nShutting down...")

    def _report_fatal(self, message: str) -> None:
        self.state = PowerState.DEGRADED
        self.presenter.set_error()
        self.presenter.set_tooltip(message)
        self.notifier.notify("UPS monitor", message)
