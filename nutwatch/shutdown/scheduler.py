"""
Deferred host shutdown.

The scheduler owns at most one countdown. Arming while a countdown exists is
ignored, cancelling when none exists is harmless, and a countdown that
completes fires exactly once.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from nutwatch.core.ports import Notifier, ShutdownExecutor

logger = logging.getLogger(__name__)

FireCallback = Callable[[], Awaitable[None]]


class TimerState(Enum):
    """Shutdown countdown state."""
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


class ShutdownScheduler:
    """
    Arms and cancels a single deferred shutdown.

    All state changes happen under one asyncio lock, so a cancel racing a
    countdown that just elapsed either stops it before it takes the lock or
    finds the state already FIRED and does nothing.
    """

    def __init__(self, executor: ShutdownExecutor, notifier: Notifier):
        self.executor = executor
        self.notifier = notifier
        self._state = TimerState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._deadline: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_armed(self) -> bool:
        return self._state == TimerState.ARMED

    def remaining(self) -> Optional[float]:
        """Seconds left on the countdown, or None when not armed."""
        if self._state != TimerState.ARMED or self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def arm(self, delay_ms: int, on_fire: Optional[FireCallback] = None) -> bool:
        """
        Start the shutdown countdown.

        Args:
            delay_ms: Milliseconds to wait before shutting down.
            on_fire: Optional coroutine function run when the countdown
                completes, before the host shutdown.

        Returns:
            True if a countdown was started, False if one already existed.
        """
        async with self._lock:
            if self._state != TimerState.IDLE:
                logger.debug("Shutdown already %s, ignoring arm", self._state.value)
                return False

            delay = max(delay_ms, 0) / 1000.0
            self._deadline = asyncio.get_running_loop().time() + delay
            self._state = TimerState.ARMED
            self._task = asyncio.create_task(self._countdown(self._deadline, on_fire))
            logger.warning("Shutdown armed, host goes down in %.1f seconds", delay)
            return True

    async def cancel(self) -> bool:
        """
        Abort a pending countdown.

        Returns:
            True if a countdown was cancelled, False if there was none.
        """
        async with self._lock:
            if self._state != TimerState.ARMED:
                return False

            task = self._task
            self._task = None
            self._deadline = None
            self._state = TimerState.IDLE
            if task is not None:
                task.cancel()

        logger.info("Pending shutdown cancelled")
        self.notifier.notify("Power supply", "Shutdown aborted")
        return True

    async def _countdown(self, deadline: float, on_fire: Optional[FireCallback]) -> None:
        loop = asyncio.get_running_loop()
        # The loop may wake a handle slightly early; never fire before the deadline
        while (remaining := deadline - loop.time()) > 0:
            await asyncio.sleep(remaining)

        async with self._lock:
            if self._state != TimerState.ARMED or self._task is not asyncio.current_task():
                return
            self._state = TimerState.FIRED
            self._deadline = None

        logger.critical("Shutdown countdown elapsed, shutting down host")
        if on_fire is not None:
            try:
                await on_fire()
            except Exception:
                logger.exception("Shutdown callback failed")

        self.notifier.notify("Shutdown", "The computer is shutting down now")
        try:
            result = await self.executor.perform_shutdown()
        except Exception:
            logger.exception("Host shutdown failed")
            return
        logger.critical("Host shutdown requested: %s", result)
