"""
Configuration management for nutwatch.

Process-level settings come from environment variables through Pydantic's
BaseSettings. The monitoring configuration itself lives in a JSON file
(``config.json`` by default) with the camelCase keys used by the tray monitor
this tool replaces. Two flags of that file may change while a session runs;
they are held in a lock-guarded ``LiveFlags`` accessor.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Process settings.

    These settings are loaded from environment variables prefixed with
    ``NUTWATCH_`` (or a ``.env`` file).
    """

    CONFIG_PATH: Path = Path("config.json")
    LOCK_FILE: Path = Path.home() / ".cache" / "nutwatch.lock"
    AUTOSTART_DIR: Path = Path.home() / ".config" / "autostart"

    # Never run the real shutdown command
    DRY_RUN: bool = False

    # Desktop notification helper, looked up on PATH
    NOTIFY_COMMAND: str = "notify-send"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="NUTWATCH_",
        extra="ignore",
    )


settings = Settings()


class ConfigError(Exception):
    """The configuration file could not be read or is invalid."""
    pass


class ConfigCreatedError(ConfigError):
    """No configuration file existed; a default one was written."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"{path} was created with default values. Fill it in and start again.")


class MonitorConfig(BaseModel):
    """
    Snapshot of the monitoring configuration.

    Frozen for the duration of a session; the live flags are copied into a
    ``LiveFlags`` object at startup and written back through ``apply_to``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    host: str = "192.168.1.50"
    port: int = Field(3493, ge=1, le=65535)
    user: str = ""
    password: str = ""
    ups_name: str = Field("ups", alias="upsName", min_length=1)
    poll_interval: int = Field(10000, alias="pollInterval", gt=0)  # ms
    shutdown_delay: int = Field(120000, alias="shutdownDelay", ge=0)  # ms
    enable_notifications: bool = Field(True, alias="enableNotifications")
    autostart: bool = True

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def to_file_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def save_config(config: MonitorConfig, path: Path) -> None:
    """Write the configuration as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_file_dict(), indent=2) + "\n", encoding="utf-8")
    logger.debug("Saved configuration to %s", path)


def load_config(path: Path) -> MonitorConfig:
    """
    Load the configuration file.

    Args:
        path: Location of the JSON configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigCreatedError: If the file did not exist. Defaults were written.
        ConfigError: If the file is unreadable, not JSON, or has invalid values.
    """
    path = Path(path)
    if not path.exists():
        save_config(MonitorConfig(), path)
        logger.warning("Configuration file %s not found, wrote defaults", path)
        raise ConfigCreatedError(path)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    try:
        config = MonitorConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded configuration from %s (ups=%s host=%s)", path, config.ups_name, config.address)
    return config


class LiveFlags:
    """
    Thread-safe holder for the flags that may change during a session.

    The poll loop reads ``enable_notifications`` while signal handlers or
    other threads flip it, so every access goes through the lock.
    """

    FIELDS = ("enable_notifications", "autostart")

    def __init__(self, enable_notifications: bool = True, autostart: bool = True):
        self._lock = threading.Lock()
        self._values = {
            "enable_notifications": enable_notifications,
            "autostart": autostart,
        }

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "LiveFlags":
        return cls(
            enable_notifications=config.enable_notifications,
            autostart=config.autostart,
        )

    @property
    def enable_notifications(self) -> bool:
        with self._lock:
            return self._values["enable_notifications"]

    @property
    def autostart(self) -> bool:
        with self._lock:
            return self._values["autostart"]

    def set(self, name: str, value: bool) -> None:
        if name not in self.FIELDS:
            raise KeyError(f"Unknown flag: {name}")
        with self._lock:
            self._values[name] = bool(value)
        logger.info("Flag %s set to %s", name, bool(value))

    def toggle(self, name: str) -> bool:
        if name not in self.FIELDS:
            raise KeyError(f"Unknown flag: {name}")
        with self._lock:
            self._values[name] = not self._values[name]
            value = self._values[name]
        logger.info("Flag %s toggled to %s", name, value)
        return value

    def update_from(self, config: MonitorConfig) -> None:
        with self._lock:
            self._values["enable_notifications"] = config.enable_notifications
            self._values["autostart"] = config.autostart

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return dict(self._values)

    def apply_to(self, config: MonitorConfig) -> MonitorConfig:
        """Return a copy of ``config`` carrying the current flag values."""
        return config.model_copy(update=self.snapshot())
