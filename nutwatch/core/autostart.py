"""
Login autostart through an XDG desktop entry.
"""

import logging
import shlex
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ENTRY_NAME = "nutwatch.desktop"

ENTRY_TEMPLATE = """[Desktop Entry]
Type=Application
Name=UPS Monitor
Comment=Shut down when the UPS runs on battery
Exec={command}
Terminal=false
X-GNOME-Autostart-enabled=true
"""


def default_command(config_path: Optional[Path] = None) -> str:
    """Command line that starts the monitor, pinned to one config file when given."""
    command = f"{shlex.quote(sys.executable)} -m nutwatch.cli.main run"
    if config_path is not None:
        command += f" --config {shlex.quote(str(Path(config_path).absolute()))}"
    return command


class AutostartManager:
    """
    Creates or removes the autostart entry.

    Errors are logged and otherwise ignored; a missing autostart entry must
    not keep the monitor from running.
    """

    def __init__(self, entry_dir: Path, command: Optional[str] = None, config_path: Optional[Path] = None):
        self.entry_dir = Path(entry_dir)
        self.command = command or default_command(config_path)

    @property
    def entry_path(self) -> Path:
        return self.entry_dir / ENTRY_NAME

    def is_enabled(self) -> bool:
        return self.entry_path.exists()

    def apply(self, enabled: bool) -> bool:
        """
        Bring the entry in line with the flag.

        Returns:
            True if the filesystem now matches ``enabled``.
        """
        try:
            if enabled:
                self.entry_dir.mkdir(parents=True, exist_ok=True)
                self.entry_path.write_text(ENTRY_TEMPLATE.format(command=self.command), encoding="utf-8")
                logger.info("Autostart entry written to %s", self.entry_path)
            elif self.entry_path.exists():
                self.entry_path.unlink()
                logger.info("Autostart entry %s removed", self.entry_path)
        except OSError as e:
            logger.warning("Failed to update autostart entry %s: %s", self.entry_path, e)
            return False
        return True
