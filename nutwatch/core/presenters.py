"""
Console and desktop implementations of the Presenter and Notifier ports.
"""

import logging
import shutil
import subprocess
from typing import Optional

from rich.console import Console

from nutwatch.config import LiveFlags
from nutwatch.core.ports import Notifier, Presenter

logger = logging.getLogger(__name__)


class ConsolePresenter(Presenter):
    """
    Stand-in for the tray icon: prints to the console when the indicator
    or the status text changes.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.connected: Optional[bool] = None
        self.tooltip = ""

    def set_connected(self) -> None:
        if self.connected is not True:
            self.console.print("[green]●[/green] UPS monitor: OK")
        self.connected = True

    def set_error(self) -> None:
        if self.connected is not False:
            self.console.print("[red]●[/red] UPS monitor: attention")
        self.connected = False

    def set_tooltip(self, text: str) -> None:
        if text == self.tooltip:
            return
        self.tooltip = text
        self.console.print(text.replace("\n", " | "), highlight=False)


class LogNotifier(Notifier):
    """Writes notifications to the log."""

    def notify(self, title: str, message: str) -> None:
        logger.warning("%s: %s", title, message)


class DesktopNotifier(Notifier):
    """
    Sends desktop notifications through ``notify-send``.

    Falls back to logging when the helper is not installed.
    """

    def __init__(self, command: str = "notify-send", app_name: str = "UPS Monitor"):
        self.app_name = app_name
        self.executable = shutil.which(command)
        self._fallback = LogNotifier()
        if self.executable is None:
            logger.info("'%s' not found, notifications go to the log", command)

    def notify(self, title: str, message: str) -> None:
        if self.executable is None:
            self._fallback.notify(title, message)
            return
        # Fire and forget, never wait on the helper
        try:
            subprocess.Popen(
                [self.executable, "--app-name", self.app_name, title, message],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Desktop notification failed: %s", e)
            self._fallback.notify(title, message)


class GatedNotifier(Notifier):
    """Forwards notifications only while the notifications flag is on."""

    def __init__(self, notifier: Notifier, flags: LiveFlags):
        self.notifier = notifier
        self.flags = flags

    def notify(self, title: str, message: str) -> None:
        if not self.flags.enable_notifications:
            logger.debug("Notifications disabled, dropping '%s'", title)
            return
        self.notifier.notify(title, message)
