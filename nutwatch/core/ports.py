"""
Interfaces between the monitoring core and its collaborators.

The core only talks to these; tray icons, desktop notifications and the
operating system's shutdown command live in implementations elsewhere.
"""

from abc import ABC, abstractmethod
from typing import Any


class Presenter(ABC):
    """Status display (tray icon and tooltip, or a console stand-in)."""

    @abstractmethod
    def set_connected(self) -> None:
        """Show the healthy/on-mains indicator."""
        pass

    @abstractmethod
    def set_error(self) -> None:
        """Show the error/on-battery indicator."""
        pass

    @abstractmethod
    def set_tooltip(self, text: str) -> None:
        """Replace the status text."""
        pass


class Notifier(ABC):
    """User-facing alerts."""

    @abstractmethod
    def notify(self, title: str, message: str) -> None:
        pass


class ShutdownExecutor(ABC):
    """Performs the actual host shutdown."""

    @abstractmethod
    async def perform_shutdown(self) -> Any:
        """
        Shut the host down.

        :return: An implementation-specific result object.
        """
        pass
