"""
Change-feed consumer - forwards committed alert mutations to notifiers.

Runs as a single long-lived task per process that:
1. Reads committed changes from the persistence gateway after its cursor
2. Drains everything available in batches, in feed (commit) order
3. Hands each change to the NotificationDispatcher
4. Sleeps for the poll interval, then repeats

Read failures never end the loop: they are logged and retried under the
feed reconnect policy. The consumer and the alert processor only meet in
the store; neither calls the other.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import structlog

from alertflow.alerts.errors import StreamDisconnected
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.schemas import ChangeEvent
from alertflow.feed.config import FeedConfig
from alertflow.feed.reconnect import ReconnectPolicy
from alertflow.notifications.dispatcher import NotificationDispatcher
from alertflow.observability.logging import bind_context, clear_context
from alertflow.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class ChangeFeedConsumer:
    """
    Polls the change feed and dispatches every change exactly once.

    The cursor is the sequence of the last change handed out; changes at
    or below it are never yielded again, so a repeated read after a
    reconnect cannot produce duplicates.

    Usage:
        consumer = ChangeFeedConsumer(gateway, dispatcher)
        task = asyncio.create_task(consumer.start())  # runs until stopped
        ...
        await consumer.stop()
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: NotificationDispatcher,
        config: FeedConfig | None = None,
        start_sequence: int | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            gateway: Store whose change feed is read
            dispatcher: Receives every change event
            config: Poll interval, batch size and reconnect delays
            start_sequence: Explicit cursor; overrides ``config.start_from``
        """
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._config = config or FeedConfig()
        self._cursor: int | None = start_sequence
        self._reconnect = ReconnectPolicy.from_config(self._config)
        self._running = False
        # Survives until start() returns, so an early stop() is not lost
        self._stop_requested = False
        self._wake = asyncio.Event()

    @property
    def position(self) -> int | None:
        """Sequence of the last change handed out (None before the first read)."""
        return self._cursor

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """
        Run the consumer until ``stop()`` is called or the task is cancelled.

        Starts the dispatcher on entry and stops it on exit; events still
        queued for notifiers at that point are abandoned.
        """
        self._running = True
        bind_context(component="change-feed")
        await self._dispatcher.start()

        logger.info(
            "Change-feed consumer starting",
            poll_interval=self._config.poll_interval_seconds,
            batch_size=self._config.batch_size,
            start_from=self._config.start_from,
        )

        try:
            async for event in self.subscribe():
                await self._dispatcher.dispatch(event)
        except asyncio.CancelledError:
            logger.info("Change-feed consumer cancelled", position=self._cursor)
        finally:
            self._running = False
            await self._dispatcher.stop()
            logger.info("Change-feed consumer stopped", position=self._cursor)
            self._stop_requested = False
            self._wake.clear()
            clear_context()

    async def stop(self) -> None:
        """
        Ask the loop to exit at the next opportunity.

        Safe to call before ``start()`` has begun reading: the request is
        kept and the loop exits on its first check.
        """
        logger.info("Stopping change-feed consumer")
        self._stop_requested = True
        self._running = False
        self._wake.set()

    async def subscribe(self) -> AsyncIterator[ChangeEvent]:
        """
        Yield change events forever (until stopped), in feed order.

        Disconnects are absorbed here: the iterator backs off and resumes
        from its cursor instead of raising.
        """
        while not self._stop_requested:
            try:
                batch = await self._read_batch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._on_read_failure(e)
                continue
            self._on_read_success()

            for event in batch:
                if self._stop_requested:
                    return
                self._advance(event)
                yield event

            # Keep draining while full batches come back
            if len(batch) < self._config.batch_size:
                await self._pause(self._config.poll_interval_seconds)

    async def poll_once(self) -> int:
        """
        Drain everything currently available and dispatch it.

        Read errors propagate to the caller.

        Returns:
            Number of change events dispatched.
        """
        dispatched = 0
        while True:
            batch = await self._read_batch()
            for event in batch:
                self._advance(event)
                await self._dispatcher.dispatch(event)
                dispatched += 1
            if len(batch) < self._config.batch_size:
                return dispatched

    async def _read_batch(self) -> list[ChangeEvent]:
        if self._cursor is None:
            self._cursor = await self._initial_position()
            logger.info("Change-feed cursor initialized", position=self._cursor)

        events = await self._gateway.read_changes(self._cursor, self._config.batch_size)
        return [e for e in events if e.sequence > self._cursor]

    async def _initial_position(self) -> int:
        if self._config.start_from == "earliest":
            return 0
        return await self._gateway.latest_sequence()

    def _advance(self, event: ChangeEvent) -> None:
        self._cursor = event.sequence
        get_metrics().record_feed_event(event.kind, event.sequence)
        logger.debug(
            "Change event read",
            sequence=event.sequence,
            kind=event.kind,
            alert_id=event.alert_id,
        )

    async def _on_read_failure(self, error: Exception) -> None:
        delay = self._reconnect.record_failure(error)
        get_metrics().record_feed_disconnect()

        log_kwargs: dict[str, Any] = {
            "error": str(error),
            "attempt": self._reconnect.failures,
            "retry_in": round(delay, 2),
            "position": self._cursor,
        }
        if isinstance(error, StreamDisconnected):
            logger.warning("Change feed disconnected", **log_kwargs)
        else:
            logger.error(
                "Change feed read failed", error_type=type(error).__name__, **log_kwargs,
            )

        await self._pause(delay)

    def _on_read_success(self) -> None:
        failures = self._reconnect.failures
        outage = self._reconnect.record_success()
        if outage is not None:
            logger.info(
                "Change feed recovered",
                failed_reads=failures,
                outage_seconds=round(outage, 2),
                position=self._cursor,
            )

    async def _pause(self, seconds: float) -> None:
        """Sleep for ``seconds`` or until ``stop()`` is called."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def health_check(self) -> dict[str, Any]:
        """Report consumer, gateway and per-notifier state."""
        return {
            "running": self._running,
            "position": self._cursor,
            "reconnecting": self._reconnect.in_outage,
            "last_error": self._reconnect.last_error,
            "gateway_healthy": await self._gateway.health_check(),
            "notifiers": self._dispatcher.stats(),
        }
