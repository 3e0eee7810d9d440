"""Cancellable recurring task."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)


class RecurringTask:
    """Run an async callable now and then every *interval* seconds until stopped.

    The handle pairs an :class:`asyncio.Task` with an :class:`asyncio.Event`
    stop token. :meth:`stop` wakes the inter-cycle wait so no further
    cycle starts; a cycle already running is allowed to finish. Errors
    raised by *cycle* are handed to *on_error* (or logged) and never end
    the loop.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[None]],
        interval: float,
        *,
        name: str = "recurring-task",
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cycle = cycle
        self._interval = interval
        self._name = name
        self._on_error = on_error
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"{self._name} already started")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def stop(self) -> None:
        """Request the loop to end after the current cycle, if any."""
        self._stop.set()

    async def wait(self) -> None:
        """Wait for the loop task to finish."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self._cycle()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self._on_error is not None:
                    self._on_error(exc)
                else:
                    _logger.exception("%s cycle failed", self._name)
            if self._stop.is_set():
                break
            # Returns early when stop() sets the event.
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop.wait(), self._interval)
        _logger.debug("%s finished", self._name)
