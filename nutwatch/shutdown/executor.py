"""
Local host shutdown with logging and result tracking.

Runs the platform's shutdown command as a subprocess and records what
happened in a ShutdownResult.
"""

import asyncio
import logging
import shlex
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from nutwatch.core.ports import ShutdownExecutor

logger = logging.getLogger(__name__)


class ShutdownStatus(Enum):
    """Shutdown operation status."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class ShutdownResult:
    """Result of a shutdown operation."""

    status: ShutdownStatus
    command: str
    exit_code: Optional[int] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    execution_time: Optional[float] = None
    error_message: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    @property
    def success(self) -> bool:
        """Whether shutdown was successful."""
        return self.status == ShutdownStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'status': self.status.value,
            'command': self.command,
            'exit_code': self.exit_code,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'execution_time': self.execution_time,
            'error_message': self.error_message,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'success': self.success,
        }


class HostShutdownExecutor(ShutdownExecutor):
    """
    Shuts down the machine nutwatch runs on.
    """

    # Common shutdown commands by platform
    SHUTDOWN_COMMANDS = {
        'linux': 'shutdown -P now',
        'freebsd': 'shutdown -p now',
        'win32': 'shutdown /s /t 0 /f',
        'darwin': 'shutdown -h now',
        'default': 'shutdown -P now',
    }

    def __init__(self, command: Optional[str] = None, dry_run: bool = False, timeout: float = 30.0):
        self.command = command or self.get_shutdown_command()
        self.dry_run = dry_run
        self.timeout = timeout
        self._results: List[ShutdownResult] = []

    @classmethod
    def get_shutdown_command(cls, platform: Optional[str] = None) -> str:
        """
        Get the shutdown command for a platform.

        Args:
            platform: A ``sys.platform`` value; defaults to the current one.
        """
        platform = (platform or sys.platform).lower()
        for key, command in cls.SHUTDOWN_COMMANDS.items():
            if platform.startswith(key):
                return command
        return cls.SHUTDOWN_COMMANDS['default']

    @property
    def results(self) -> List[ShutdownResult]:
        return list(self._results)

    async def perform_shutdown(self) -> ShutdownResult:
        """
        Run the shutdown command.

        Failures are reported in the result rather than raised.
        """
        if self.dry_run:
            logger.warning(f"DRY RUN: Would execute '{self.command}'")
            result = ShutdownResult(
                status=ShutdownStatus.SUCCESS,
                command=f"DRY RUN: {self.command}",
                exit_code=0,
                stdout="Dry run - command not executed",
                execution_time=0.0,
            )
            self._results.append(result)
            return result

        start = time.monotonic()
        logger.critical(f"Executing shutdown: {self.command}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *shlex.split(self.command, posix=not sys.platform.startswith("win")),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            result = ShutdownResult(
                status=ShutdownStatus.FAILED,
                command=self.command,
                error_message=f"Failed to start shutdown command: {e}",
                execution_time=time.monotonic() - start,
            )
            logger.error(result.error_message)
            self._results.append(result)
            return result

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            result = ShutdownResult(
                status=ShutdownStatus.TIMEOUT,
                command=self.command,
                error_message=f"Shutdown command timed out after {self.timeout}s",
                execution_time=time.monotonic() - start,
            )
            logger.error(result.error_message)
            self._results.append(result)
            return result

        result = ShutdownResult(
            status=ShutdownStatus.SUCCESS if proc.returncode == 0 else ShutdownStatus.FAILED,
            command=self.command,
            exit_code=proc.returncode,
            stdout=stdout.decode(errors="replace").strip(),
            stderr=stderr.decode(errors="replace").strip(),
            execution_time=time.monotonic() - start,
        )
        if not result.success:
            result.error_message = f"Shutdown command exited with code {proc.returncode}"
            logger.error(f"{result.error_message}: {result.stderr}")
        self._results.append(result)
        return result
