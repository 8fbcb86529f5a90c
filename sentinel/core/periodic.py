"""PeriodicTask — a cancellable repeating coroutine with graceful stop."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.stdlib.get_logger()

TickFn = Callable[[], Awaitable[None]]


class PeriodicTask:
    """Runs *func* every *interval_secs* on the event loop.

    Ticks of one task never overlap: the next sleep starts after the
    previous tick returned. Exceptions raised by a tick are logged and
    counted, never propagated, so one bad cycle cannot end the loop.

    ``stop()`` wakes the sleeper immediately and lets an in-flight tick
    settle for up to *grace_secs* before cancelling it.

    Usage::

        task = PeriodicTask("health_check", service.run_health_check, 30.0)
        task.start()
        ...
        await task.stop(grace_secs=10.0)
    """

    def __init__(
        self,
        name: str,
        func: TickFn,
        interval_secs: float,
        *,
        run_immediately: bool = True,
    ) -> None:
        self._name = name
        self._func = func
        self._interval_secs = interval_secs
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._run_count = 0
        self._error_count = 0
        self._last_run_at: float = 0.0

    # ── Properties ───────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval_secs(self) -> float:
        return self._interval_secs

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def last_run_at(self) -> float:
        return self._last_run_at

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Schedule the background loop. No-op if already running."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.debug(
            "periodic_task_started",
            task=self._name,
            interval_secs=self._interval_secs,
        )

    async def stop(self, grace_secs: float | None = None) -> None:
        """Stop the loop, letting an in-flight tick finish within *grace_secs*."""
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=grace_secs)
        except TimeoutError:
            logger.warning("periodic_task_stop_timeout", task=self._name)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._task = None
        logger.debug(
            "periodic_task_stopped",
            task=self._name,
            run_count=self._run_count,
        )

    async def run_once(self) -> None:
        """Execute one tick, swallowing and logging any failure."""
        try:
            await self._func()
        except asyncio.CancelledError:
            raise
        except Exception:
            self._error_count += 1
            logger.exception(
                "periodic_task_error",
                task=self._name,
                error_count=self._error_count,
            )
        finally:
            self._run_count += 1
            self._last_run_at = time.time()

    # ── Internal loop ────────────────────────────────────────────

    async def _loop(self) -> None:
        if not self._run_immediately and await self._sleep():
            return
        while not self._stop_event.is_set():
            await self.run_once()
            if await self._sleep():
                return

    async def _sleep(self) -> bool:
        """Wait one interval; return True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(
                self._stop_event.wait(), timeout=self._interval_secs,
            )
        except TimeoutError:
            return False
        return True
