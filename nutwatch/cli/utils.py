import asyncio
import functools
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from nutwatch.config import ConfigCreatedError, ConfigError, MonitorConfig, load_config, settings

console = Console()

config_option = click.option(
    '--config', 'config_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Path to config.json (default: $NUTWATCH_CONFIG_PATH or ./config.json).',
)


def handle_async_command(async_func):
    """Decorator to handle async CLI commands."""
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper


def resolve_config_path(config_path: Optional[Path]) -> Path:
    return config_path or settings.CONFIG_PATH


def load_config_or_exit(config_path: Optional[Path]) -> MonitorConfig:
    """Load the configuration, exiting with a message when that is not possible."""
    path = resolve_config_path(config_path)
    try:
        return load_config(path)
    except ConfigCreatedError as e:
        console.print(f"[yellow]{e}[/yellow]")
        sys.exit(0)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
