"""ProtocolEventFeed — push-style delivery of pool events to subscribers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from types import TracebackType

import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.periodic import PeriodicTask
from sentinel.core.types import ProtocolEvent

logger = structlog.stdlib.get_logger()

ProtocolEventCallback = Callable[[ProtocolEvent], Awaitable[None] | None]


class ProtocolEventFeed:
    """Follows the chain head and emits Paused / Unpaused / LiquidationCall.

    The feed starts at the current head (history is not replayed) and on
    each tick fetches logs for the blocks mined since the previous tick.
    Subscribers are invoked in registration order; a failing subscriber is
    logged and does not affect the others.

    Usage::

        feed = ProtocolEventFeed(contracts, poll_interval_secs=15)
        feed.on_event(service.on_protocol_event)
        async with feed:
            ...
    """

    def __init__(
        self,
        contracts: ProtocolContracts,
        poll_interval_secs: float = 15.0,
        max_block_range: int = 1000,
    ) -> None:
        self._contracts = contracts
        self._max_block_range = max_block_range
        self._callbacks: list[ProtocolEventCallback] = []
        self._last_block: int | None = None
        self._event_count = 0
        self._task = PeriodicTask("protocol_events", self.poll, poll_interval_secs)

    @property
    def running(self) -> bool:
        return self._task.running

    @property
    def last_block(self) -> int | None:
        return self._last_block

    @property
    def event_count(self) -> int:
        return self._event_count

    @property
    def error_count(self) -> int:
        return self._task.error_count

    def on_event(self, callback: ProtocolEventCallback) -> None:
        """Register a callback for protocol events."""
        self._callbacks.append(callback)

    async def start(self) -> None:
        """Start following the chain."""
        self._task.start()
        logger.info("event_feed_started", interval_secs=self._task.interval_secs)

    async def stop(self, grace_secs: float | None = None) -> None:
        """Stop following the chain and drop subscribers."""
        await self._task.stop(grace_secs)
        self._callbacks.clear()
        logger.info("event_feed_stopped", events=self._event_count)

    async def poll(self) -> list[ProtocolEvent]:
        """Fetch and emit events mined since the last poll."""
        head = await self._contracts.latest_block()
        if self._last_block is None:
            self._last_block = head
            return []
        if head <= self._last_block:
            return []

        from_block = self._last_block + 1
        to_block = min(head, self._last_block + self._max_block_range)
        events = await self._contracts.fetch_events(from_block, to_block)
        self._last_block = to_block

        for event in events:
            self._event_count += 1
            await self._emit(event)
        return events

    async def _emit(self, event: ProtocolEvent) -> None:
        for cb in self._callbacks:
            try:
                result = cb(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "protocol_event_callback_error",
                    event_type=event.event_type,
                )

    async def __aenter__(self) -> ProtocolEventFeed:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
