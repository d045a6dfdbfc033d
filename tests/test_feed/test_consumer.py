"""Tests for ChangeFeedConsumer."""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from alertflow.alerts.errors import StreamDisconnected
from alertflow.alerts.memory import InMemoryGateway
from alertflow.alerts.processor import AlertProcessor
from alertflow.feed.config import FeedConfig
from alertflow.feed.consumer import ChangeFeedConsumer
from alertflow.notifications.dispatcher import NotificationDispatcher
from tests.conftest import FailingNotifier, RecordingNotifier


def _config(**overrides) -> FeedConfig:
    defaults = {
        "poll_interval_seconds": 0.01,
        "batch_size": 2,
        "start_from": "earliest",
        "backoff_base_delay": 0.01,
        "backoff_max_delay": 0.02,
    }
    defaults.update(overrides)
    return FeedConfig(**defaults)


class DisconnectingGateway(InMemoryGateway):
    """Fails the first ``failures`` change-feed reads."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.reads = 0

    async def read_changes(self, after_sequence, limit=100):
        self.reads += 1
        if self.reads <= self.failures:
            raise StreamDisconnected("connection reset")
        return await super().read_changes(after_sequence, limit)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.fixture
def recorder():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(recorder):
    return NotificationDispatcher([recorder])


# ── poll_once ────────────────────────────────────────────


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_every_change_dispatched_once(self, processor, gateway, draft, dispatcher, recorder):
        await processor.process(draft)
        await processor.process(draft)
        await processor.process(replace(draft, severity="critical"))

        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        assert await consumer.poll_once() == 3
        await dispatcher.join()

        assert [e.sequence for e in recorder.events] == [1, 2, 3]
        assert [e.kind for e in recorder.events] == ["insert", "update", "update"]
        assert consumer.position == 3

        # nothing new: no duplicates on the next poll
        assert await consumer.poll_once() == 0
        await dispatcher.join()
        assert len(recorder.events) == 3
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_latest_start_skips_history(self, processor, gateway, draft, dispatcher, recorder):
        await processor.process(draft)

        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(start_from="latest"))
        assert await consumer.poll_once() == 0
        assert consumer.position == 1

        await processor.process(replace(draft, severity="minor"))
        assert await consumer.poll_once() == 1
        await dispatcher.join()

        assert [e.sequence for e in recorder.events] == [2]
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_explicit_start_sequence(self, processor, gateway, draft, dispatcher, recorder):
        for severity in ["minor", "major", "critical"]:
            await processor.process(replace(draft, severity=severity))

        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(), start_sequence=2)
        assert await consumer.poll_once() == 1
        await dispatcher.join()
        assert recorder.events[0].sequence == 3
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_read_error_propagates(self, dispatcher):
        consumer = ChangeFeedConsumer(DisconnectingGateway(failures=1), dispatcher, _config())
        with pytest.raises(StreamDisconnected):
            await consumer.poll_once()

    @pytest.mark.asyncio
    async def test_stale_events_filtered(self, draft, dispatcher):
        gateway = AsyncMock()
        stale = await _changes_for(draft)
        gateway.read_changes.return_value = stale

        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(batch_size=10), start_sequence=1)
        assert await consumer.poll_once() == 1
        assert consumer.position == 2
        await dispatcher.stop()


async def _changes_for(draft):
    gw = InMemoryGateway()
    await gw.insert(replace(draft, id="a1", status="open"))
    stored = await gw.get("a1")
    await gw.update_conditional("a1", stored.version, replace(stored, severity="minor"))
    return await gw.read_changes(0)


# ── Long-running loop ────────────────────────────────────


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_picks_up_new_changes_while_running(self, processor, gateway, draft, dispatcher, recorder):
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        task = asyncio.create_task(consumer.start())
        await _wait_for(lambda: consumer.position is not None)

        for severity in ["minor", "major", "critical", "warning", "ok"]:
            await processor.process(replace(draft, severity=severity))

        await _wait_for(lambda: len(recorder.events) == 5)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert [e.sequence for e in recorder.events] == [1, 2, 3, 4, 5]
        assert not consumer.is_running
        assert not dispatcher.is_running

    @pytest.mark.asyncio
    async def test_survives_disconnects(self, draft, recorder):
        gateway = DisconnectingGateway(failures=3)
        processor = AlertProcessor(gateway)
        await processor.process(draft)
        await processor.process(draft)

        dispatcher = NotificationDispatcher([recorder])
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        task = asyncio.create_task(consumer.start())

        await _wait_for(lambda: len(recorder.events) == 2)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert gateway.reads > 3
        assert [e.sequence for e in recorder.events] == [1, 2]

    @pytest.mark.asyncio
    async def test_unexpected_errors_also_retried(self, draft, recorder):
        gateway = AsyncMock()
        gateway.read_changes.side_effect = _then_empty(
            [RuntimeError("boom"), await _changes_for(draft)]
        )

        dispatcher = NotificationDispatcher([recorder])
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(batch_size=10), start_sequence=0)
        task = asyncio.create_task(consumer.start())

        await _wait_for(lambda: len(recorder.events) == 2)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_stall_feed(self, processor, gateway, draft, recorder):
        failing = FailingNotifier()
        dispatcher = NotificationDispatcher([failing, recorder])
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        task = asyncio.create_task(consumer.start())

        for severity in ["minor", "major", "critical"]:
            await processor.process(replace(draft, severity=severity))

        await _wait_for(lambda: len(recorder.events) == 3)
        await _wait_for(lambda: failing.calls == 3)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert consumer.position == 3

    @pytest.mark.asyncio
    async def test_cancel_stops_cleanly(self, gateway, dispatcher):
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        task = asyncio.create_task(consumer.start())
        await _wait_for(lambda: consumer.position is not None)

        task.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        assert not consumer.is_running
        assert not dispatcher.is_running

    @pytest.mark.asyncio
    async def test_stop_before_first_read_ends_task(self, gateway, dispatcher, recorder):
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(poll_interval_seconds=60.0))
        task = asyncio.create_task(consumer.start())
        await consumer.stop()

        done, _ = await asyncio.wait({task}, timeout=1.0)

        assert done == {task}
        assert not consumer.is_running
        assert not dispatcher.is_running
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_can_run_again_after_stop(self, processor, gateway, draft, dispatcher, recorder):
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        task = asyncio.create_task(consumer.start())
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

        await processor.process(draft)
        task = asyncio.create_task(consumer.start())
        await _wait_for(lambda: len(recorder.events) == 1)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_outage_visible_in_health_until_recovered(self, recorder):
        gateway = DisconnectingGateway(failures=2)
        dispatcher = NotificationDispatcher([recorder])
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config(), start_sequence=0)

        with pytest.raises(StreamDisconnected):
            await consumer.poll_once()
        assert (await consumer.health_check())["reconnecting"] is False

        task = asyncio.create_task(consumer.start())
        await _wait_for(lambda: gateway.reads > 2)
        await consumer.stop()
        await asyncio.wait_for(task, timeout=1.0)

        health = await consumer.health_check()
        assert health["reconnecting"] is False
        assert health["last_error"] is None

    @pytest.mark.asyncio
    async def test_health_check(self, gateway, dispatcher):
        consumer = ChangeFeedConsumer(gateway, dispatcher, _config())
        health = await consumer.health_check()

        assert health["running"] is False
        assert health["gateway_healthy"] is True
        assert health["notifiers"] == {
            "recording": {"delivered": 0, "failed": 0, "dropped": 0, "pending": 0},
        }


def _then_empty(responses):
    """Yield ``responses`` then empty batches forever."""
    def gen():
        yield from responses
        while True:
            yield []
    it = gen()

    async def read_changes(after_sequence, limit=100):
        item = next(it)
        if isinstance(item, BaseException):
            raise item
        return item

    return read_changes
