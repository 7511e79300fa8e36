"""Session countdown."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TimerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"


def format_time(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class SessionTimer:
    """One-second countdown that calls ``on_expire`` exactly once.

    Elapsed time is read from a monotonic clock on every tick and clamped to
    the duration, so a late or skipped tick still fires once as soon as it is
    observed.
    """

    def __init__(
        self,
        on_expire: Callable[[], None],
        clock: Callable[[], float] = time.monotonic,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._clock = clock
        self.state = TimerState.IDLE
        self.duration_seconds = 0
        self._started_at = 0.0
        self._remaining = 0

    @property
    def remaining(self) -> int:
        return self._remaining

    def start(self, duration_seconds: int) -> None:
        if self.state is not TimerState.IDLE:
            raise RuntimeError(f"Timer cannot start from {self.state.value}.")
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0.")
        self.duration_seconds = int(duration_seconds)
        self._remaining = self.duration_seconds
        self._started_at = self._clock()
        self.state = TimerState.RUNNING

    def cancel(self) -> None:
        self.state = TimerState.IDLE

    def tick(self) -> bool:
        """Refresh the countdown; returns True on the tick that expires it."""
        if self.state is not TimerState.RUNNING:
            return False
        elapsed = min(int(self._clock() - self._started_at), self.duration_seconds)
        self._remaining = self.duration_seconds - elapsed
        if self._on_tick is not None:
            self._on_tick(self._remaining)
        if self._remaining > 0:
            return False
        self.state = TimerState.EXPIRED
        logger.info("Session timer expired after %s s", self.duration_seconds)
        self._on_expire()
        return True

    async def run(self, interval: float = 1.0) -> None:
        while self.state is TimerState.RUNNING:
            await asyncio.sleep(interval)
            self.tick()
