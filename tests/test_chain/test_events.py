"""Tests for ProtocolEventFeed — block windows, callbacks, error isolation."""

from __future__ import annotations

from sentinel_fakes import FakeContracts

from sentinel.chain.events import ProtocolEventFeed
from sentinel.core.types import ProtocolEvent, ProtocolEventType


def _event(kind: ProtocolEventType = ProtocolEventType.PAUSED) -> ProtocolEvent:
    return ProtocolEvent(event_type=kind, block_number=101, tx_hash="0xabc")


class TestPoll:
    async def test_first_poll_anchors_at_head(self) -> None:
        contracts = FakeContracts(block=100)
        contracts.events = [_event()]
        feed = ProtocolEventFeed(contracts)
        events = await feed.poll()
        assert events == []
        assert feed.last_block == 100
        assert contracts.event_ranges == []

    async def test_subsequent_poll_fetches_new_blocks(self) -> None:
        contracts = FakeContracts(block=100)
        feed = ProtocolEventFeed(contracts)
        await feed.poll()

        contracts.block = 105
        contracts.events = [_event(), _event(ProtocolEventType.UNPAUSED)]
        events = await feed.poll()
        assert len(events) == 2
        assert contracts.event_ranges == [(101, 105)]
        assert feed.last_block == 105
        assert feed.event_count == 2

    async def test_no_new_blocks(self) -> None:
        contracts = FakeContracts(block=100)
        feed = ProtocolEventFeed(contracts)
        await feed.poll()
        assert await feed.poll() == []
        assert contracts.event_ranges == []

    async def test_window_is_capped(self) -> None:
        contracts = FakeContracts(block=100)
        feed = ProtocolEventFeed(contracts, max_block_range=10)
        await feed.poll()
        contracts.block = 500
        await feed.poll()
        assert contracts.event_ranges == [(101, 110)]
        assert feed.last_block == 110


class TestCallbacks:
    async def test_sync_and_async_callbacks(self) -> None:
        contracts = FakeContracts(block=1)
        feed = ProtocolEventFeed(contracts)
        sync_seen: list[ProtocolEvent] = []
        async_seen: list[ProtocolEvent] = []

        async def async_cb(event: ProtocolEvent) -> None:
            async_seen.append(event)

        feed.on_event(sync_seen.append)
        feed.on_event(async_cb)
        await feed.poll()
        contracts.block = 2
        contracts.events = [_event()]
        await feed.poll()
        assert len(sync_seen) == 1
        assert len(async_seen) == 1

    async def test_failing_callback_isolated(self) -> None:
        contracts = FakeContracts(block=1)
        feed = ProtocolEventFeed(contracts)
        seen: list[ProtocolEvent] = []

        def bad(event: ProtocolEvent) -> None:
            raise RuntimeError("subscriber bug")

        feed.on_event(bad)
        feed.on_event(seen.append)
        await feed.poll()
        contracts.block = 2
        contracts.events = [_event()]
        await feed.poll()
        assert len(seen) == 1


class TestLifecycle:
    async def test_context_manager(self) -> None:
        contracts = FakeContracts(block=1)
        async with ProtocolEventFeed(contracts, poll_interval_secs=60) as feed:
            assert feed.running
        assert not feed.running

    async def test_stop_clears_callbacks(self) -> None:
        contracts = FakeContracts(block=1)
        feed = ProtocolEventFeed(contracts, poll_interval_secs=60)
        seen: list[ProtocolEvent] = []
        feed.on_event(seen.append)
        await feed.start()
        await feed.stop(grace_secs=1)

        contracts.block = 5
        contracts.events = [_event()]
        await feed.poll()
        assert seen == []
