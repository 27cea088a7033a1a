"""
Render Gate

Backpressure for the image service: one request at a time, and at least
``delay_seconds`` between the end of one request and the start of the
next. Batch renders and individual regenerations share one gate.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from previz.core.constants import DEFAULT_RENDER_DELAY_SECONDS
from previz.core.logging_config import get_logger

logger = get_logger("pipelines.render_gate")

SleepFn = Callable[[float], Awaitable[None]]


class RenderGate:
    """Single-slot gate with a fixed spacing between requests."""

    def __init__(
        self,
        delay_seconds: float = DEFAULT_RENDER_DELAY_SECONDS,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        if delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_finished: Optional[float] = None
        self._waiting = 0

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def waiting(self) -> int:
        return self._waiting

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold the only request slot, waiting out the spacing first."""
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        try:
            if self._last_finished is not None:
                remaining = self.delay_seconds - (self._clock() - self._last_finished)
                if remaining > 0:
                    logger.debug(f"Waiting {remaining:.2f}s before next image request")
                    await self._sleep(remaining)
            try:
                yield
            finally:
                self._last_finished = self._clock()
        finally:
            self._lock.release()
