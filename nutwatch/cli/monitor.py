import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
from rich.table import Table

from nutwatch.config import ConfigError, LiveFlags, MonitorConfig, load_config, settings
from nutwatch.core.autostart import AutostartManager
from nutwatch.core.instance import AlreadyRunningError, SingleInstanceGuard
from nutwatch.core.presenters import ConsolePresenter, DesktopNotifier, GatedNotifier
from nutwatch.nut.client import NUTAuthError, NUTClient, NUTConnectError
from nutwatch.nut.events import classify_status
from nutwatch.nut.poller import VAR_CHARGE, VAR_STATUS, PowerMonitor
from nutwatch.shutdown.executor import HostShutdownExecutor
from nutwatch.shutdown.scheduler import ShutdownScheduler

from .utils import config_option, console, handle_async_command, load_config_or_exit, resolve_config_path

logger = logging.getLogger(__name__)


def reload_flags(flags: LiveFlags, config_path: Path, autostart: AutostartManager) -> None:
    """Re-read the live flags from the config file (SIGHUP)."""
    if not config_path.exists():
        logger.error("Cannot reload flags, %s does not exist", config_path)
        return
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error("Cannot reload flags: %s", e)
        return
    previous = flags.snapshot()
    flags.update_from(config)
    if previous["autostart"] != flags.autostart:
        autostart.apply(flags.autostart)
    logger.info("Reloaded flags: %s", flags.snapshot())


async def run_monitor(
    config: MonitorConfig,
    flags: LiveFlags,
    config_path: Path,
    autostart: AutostartManager,
    dry_run: bool = False,
) -> int:
    """Monitor until SIGINT/SIGTERM. Returns the process exit code."""
    notifier = GatedNotifier(DesktopNotifier(settings.NOTIFY_COMMAND), flags)
    presenter = ConsolePresenter(console)
    scheduler = ShutdownScheduler(HostShutdownExecutor(dry_run=dry_run), notifier)
    monitor = PowerMonitor(config, presenter, notifier, scheduler)

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, task.cancel)
    loop.add_signal_handler(signal.SIGHUP, reload_flags, flags, config_path, autostart)

    try:
        await monitor.run()
    except (NUTConnectError, NUTAuthError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except asyncio.CancelledError:
        logger.info("Monitor stopped")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
            loop.remove_signal_handler(sig)
        await monitor.close()
    return 0


@click.command()
@config_option
@click.option('--dry-run', is_flag=True, help='Log the shutdown instead of running it.')
def run(config_path, dry_run):
    """Monitor the UPS and shut down when it stays on battery."""
    path = resolve_config_path(config_path)
    guard = SingleInstanceGuard(settings.LOCK_FILE)
    try:
        guard.acquire()
    except AlreadyRunningError:
        console.print("[yellow]UPS monitor is already running.[/yellow]")
        sys.exit(0)

    try:
        config = load_config_or_exit(path)
        flags = LiveFlags.from_config(config)
        autostart = AutostartManager(settings.AUTOSTART_DIR, config_path=path)
        autostart.apply(flags.autostart)
        exit_code = asyncio.run(
            run_monitor(config, flags, path, autostart, dry_run=dry_run or settings.DRY_RUN)
        )
    finally:
        guard.release()
    sys.exit(exit_code)


@click.command()
@config_option
@handle_async_command
async def status(config_path):
    """Read the current UPS status once."""
    config = load_config_or_exit(config_path)
    client = NUTClient(config.host, config.port)
    await client.connect()
    try:
        await client.authenticate(config.user, config.password)
        ups_status = await client.get_var(config.ups_name, VAR_STATUS)
        charge = await client.get_var(config.ups_name, VAR_CHARGE)
    finally:
        await client.close()

    state = classify_status(ups_status)
    color = {"Online": "green", "OnBattery": "red"}.get(state.value, "yellow")
    console.print(f"[bold blue]UPS {config.ups_name}[/bold blue] @ {config.address}")
    console.print(f"[cyan]Status[/cyan]: {ups_status}")
    console.print(f"[cyan]Power State[/cyan]: [{color}]{state.value}[/{color}]")
    console.print(f"[cyan]Charge[/cyan]: {charge}%")


@click.command(name='vars')
@config_option
@handle_async_command
async def list_vars(config_path):
    """Print every variable the UPS reports."""
    config = load_config_or_exit(config_path)
    client = NUTClient(config.host, config.port)
    await client.connect()
    try:
        await client.authenticate(config.user, config.password)
        variables = await client.list_vars(config.ups_name)
    finally:
        await client.close()

    table = Table(title=f"UPS {config.ups_name} @ {config.address}")
    table.add_column("Variable", style="cyan")
    table.add_column("Value")
    for key in sorted(variables):
        table.add_row(key, variables[key])
    console.print(table)
