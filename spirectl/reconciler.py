"""Reconciliation loop run on demand and at a periodic interval."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import timedelta
from typing import Any, Callable

log = logging.getLogger(__name__)


class _RealClock:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Reconciler:
    """Calls ``reconcile`` once at start, then again after every trigger or
    whenever ``gc_interval`` elapses without one.

    ``reconcile`` may be a plain callable or return an awaitable. ``clock``
    is any object with an ``async sleep(seconds)`` method.
    """

    def __init__(
        self,
        kind: str,
        reconcile: Callable[[], Any],
        gc_interval: float | timedelta,
        clock: Any = None,
    ) -> None:
        self.kind = kind
        self._reconcile = reconcile
        if isinstance(gc_interval, timedelta):
            self._gc_interval = gc_interval.total_seconds()
        else:
            self._gc_interval = float(gc_interval)
        self._clock = clock if clock is not None else _RealClock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._triggered: asyncio.Event | None = None
        self._waiting = False

    def trigger(self) -> None:
        """Request a reconciliation; dropped unless the loop is idle-waiting."""
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._deliver()
            return
        try:
            loop.call_soon_threadsafe(self._deliver)
        except RuntimeError:
            pass

    def _deliver(self) -> None:
        if self._waiting and self._triggered is not None:
            self._triggered.set()

    async def run(self) -> None:
        """Run until cancelled; cancellation propagates as CancelledError."""
        logger = log.getChild(f"{self.kind}-reconciler")
        self._loop = asyncio.get_running_loop()
        self._triggered = asyncio.Event()
        try:
            while True:
                logger.debug("Starting reconciliation")
                result = self._reconcile()
                if inspect.isawaitable(result):
                    await result
                logger.debug("Reconciliation finished")
                logger.debug("Waiting for next reconciliation")
                if await self._wait():
                    logger.debug("Performing triggered reconciliation")
                else:
                    logger.debug("Performing periodic reconciliation")
        except asyncio.CancelledError:
            logger.info("Reconciliation canceled")
            raise
        finally:
            self._waiting = False
            self._triggered = None
            self._loop = None

    async def _wait(self) -> bool:
        assert self._triggered is not None
        self._triggered.clear()
        timer = asyncio.ensure_future(self._clock.sleep(self._gc_interval))
        triggered = asyncio.ensure_future(self._triggered.wait())
        self._waiting = True
        try:
            await asyncio.wait({timer, triggered}, return_when=asyncio.FIRST_COMPLETED)
            fired = triggered.done()
        finally:
            self._waiting = False
            timer.cancel()
            triggered.cancel()
        return fired