import logging
import os
import signal

import click

from nutwatch.config import LiveFlags, MonitorConfig, save_config, settings
from nutwatch.core.autostart import AutostartManager
from nutwatch.core.instance import SingleInstanceGuard

from .utils import config_option, console, load_config_or_exit, resolve_config_path

logger = logging.getLogger(__name__)

FLAG_NAMES = {
    'notifications': 'enable_notifications',
    'autostart': 'autostart',
}


@click.group(name='config')
def config_cli():
    """Configuration file commands."""
    pass


@config_cli.command()
@config_option
@click.option('--force', is_flag=True, help='Overwrite an existing file.')
def init(config_path, force):
    """Writes a configuration file with default values."""
    path = resolve_config_path(config_path)
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists, use --force to overwrite[/yellow]")
        raise SystemExit(1)
    save_config(MonitorConfig(), path)
    console.print(f"[green]Wrote default configuration to {path}[/green]")


@config_cli.command()
@config_option
def show(config_path):
    """Shows the configuration."""
    config = load_config_or_exit(config_path)
    data = config.to_file_dict()
    if data.get("password"):
        data["password"] = "****"
    console.print(f"[bold blue]Configuration[/bold blue] ({resolve_config_path(config_path)})")
    for key, value in data.items():
        console.print(f"[cyan]{key}[/cyan]: {value}")


@config_cli.command(name='set-flag')
@config_option
@click.argument('name', type=click.Choice(sorted(FLAG_NAMES)))
@click.argument('value', type=click.Choice(['on', 'off']))
def set_flag(config_path, name, value):
    """Turns notifications or autostart on or off."""
    path = resolve_config_path(config_path)
    config = load_config_or_exit(path)
    flags = LiveFlags.from_config(config)
    flags.set(FLAG_NAMES[name], value == 'on')
    save_config(flags.apply_to(config), path)

    if name == 'autostart':
        AutostartManager(settings.AUTOSTART_DIR, config_path=path).apply(flags.autostart)

    pid = SingleInstanceGuard(settings.LOCK_FILE).owner_pid()
    if pid is not None:
        try:
            os.kill(pid, signal.SIGHUP)
            console.print(f"Reloaded running monitor (pid {pid})")
        except ProcessLookupError:
            logger.debug("Stale lock file, pid %s is gone", pid)
        except PermissionError:
            console.print(f"[yellow]Cannot signal pid {pid}, restart the monitor to apply[/yellow]")

    console.print(f"[green]{name} is now {value}[/green]")
