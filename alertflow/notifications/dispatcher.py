"""Notification dispatcher fanning change events out to notifier backends.

Each notifier gets its own lane: a bounded queue drained by a dedicated
task. ``dispatch()`` only enqueues, so the change-feed consumer is never
held up by a slow or failing backend, and each lane delivers in feed
order. Failures are logged and counted, never retried and never raised
to the caller.

Pattern: Orchestrator, delegates to stateless notifiers.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from alertflow.alerts.schemas import ChangeEvent
from alertflow.notifications.config import NotifierConfig
from alertflow.notifications.notifiers import Notifier
from alertflow.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class _Lane:
    notifier: Notifier
    queue: asyncio.Queue
    task: asyncio.Task | None = None
    delivered: int = 0
    failed: int = 0
    dropped: int = 0
    last_error: str | None = field(default=None)


class NotificationDispatcher:
    """Delivers change events to every configured notifier independently.

    Lifecycle:
        1. ``start()``: spawn one lane task per notifier (also done lazily
           by the first ``dispatch()``)
        2. ``dispatch(event)``: enqueue on every lane
        3. ``join()``: wait until all lanes are idle
        4. ``stop()``: cancel lane tasks, abandoning queued events
    """

    def __init__(
        self,
        notifiers: list[Notifier],
        config: NotifierConfig | None = None,
    ) -> None:
        self._config = config or NotifierConfig()
        self._lanes: list[_Lane] = [
            _Lane(notifier=n, queue=asyncio.Queue(maxsize=self._config.queue_size))
            for n in notifiers
        ]
        self._running = False

    @property
    def notifiers(self) -> list[Notifier]:
        return [lane.notifier for lane in self._lanes]

    @property
    def is_running(self) -> bool:
        return self._running

    def stats(self) -> dict[str, dict[str, int]]:
        """Per-notifier delivered / failed / dropped / pending counts."""
        return {
            lane.notifier.name: {
                "delivered": lane.delivered,
                "failed": lane.failed,
                "dropped": lane.dropped,
                "pending": lane.queue.qsize(),
            }
            for lane in self._lanes
        }

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for lane in self._lanes:
            lane.task = asyncio.create_task(
                self._run_lane(lane), name=f"notifier-lane-{lane.notifier.name}",
            )
        logger.info(
            "NotificationDispatcher started with %d notifiers: %s",
            len(self._lanes), [n.name for n in self.notifiers],
        )

    async def stop(self) -> None:
        """Cancel all lanes. Queued and in-flight deliveries are abandoned."""
        self._running = False
        for lane in self._lanes:
            if lane.task is not None:
                lane.task.cancel()
        for lane in self._lanes:
            if lane.task is None:
                continue
            try:
                await lane.task
            except asyncio.CancelledError:
                pass
            lane.task = None
            abandoned = self._drain(lane.queue)
            if abandoned:
                logger.info(
                    "Notifier %s stopped with %d undelivered events",
                    lane.notifier.name, abandoned,
                )
        logger.info("NotificationDispatcher stopped")

    @staticmethod
    def _drain(queue: asyncio.Queue) -> int:
        """Discard queued events, marking each done so pending joins return."""
        drained = 0
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                return drained
            queue.task_done()
            drained += 1

    async def join(self) -> None:
        """
        Wait until every lane has finished its queued events.

        Also returns when ``stop()`` abandons what was left.
        """
        await asyncio.gather(*(lane.queue.join() for lane in self._lanes))

    async def dispatch(self, event: ChangeEvent) -> None:
        """Hand ``event`` to every notifier. Never blocks on delivery, never raises."""
        if not self._running:
            await self.start()

        for lane in self._lanes:
            try:
                lane.queue.put_nowait(event)
            except asyncio.QueueFull:
                lane.dropped += 1
                get_metrics().record_notification(lane.notifier.name, "dropped")
                logger.warning(
                    "Notifier %s backlog full (%d), dropping change %d for alert %s",
                    lane.notifier.name, lane.queue.maxsize,
                    event.sequence, event.alert_id,
                )

    async def _run_lane(self, lane: _Lane) -> None:
        while True:
            event = await lane.queue.get()
            try:
                await self._deliver(lane, event)
            finally:
                lane.queue.task_done()

    async def _deliver(self, lane: _Lane, event: ChangeEvent) -> None:
        """Make exactly one delivery attempt and record its outcome."""
        name = lane.notifier.name
        metrics = get_metrics()
        start = time.monotonic()

        try:
            await asyncio.wait_for(
                lane.notifier.notify(event), timeout=self._config.timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            lane.failed += 1
            lane.last_error = "timeout"
            metrics.record_notification(name, "timeout", time.monotonic() - start)
            logger.warning(
                "Notifier %s timed out after %.1fs on change %d (alert %s)",
                name, self._config.timeout_seconds, event.sequence, event.alert_id,
            )
            return
        except Exception as e:
            lane.failed += 1
            lane.last_error = str(e)
            metrics.record_notification(name, "failure", time.monotonic() - start)
            logger.error(
                "Notifier %s failed on change %d (alert %s): %s",
                name, event.sequence, event.alert_id, e,
            )
            return

        lane.delivered += 1
        metrics.record_notification(name, "success", time.monotonic() - start)
        logger.debug(
            "Change %d (alert %s) delivered to %s",
            event.sequence, event.alert_id, name,
        )
