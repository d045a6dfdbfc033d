"""In-memory persistence gateway.

Single-process stand-in for the PostgreSQL gateway, used by tests and by
``alertflow submit --memory``. It keeps the same guarantees: atomic
insert-or-conflict per identity, version-checked updates and an ordered
change log. Records are deep-copied on the way in and out so callers
cannot mutate stored state.
"""

import asyncio
import copy
import logging
from collections.abc import Sequence
from dataclasses import replace

from alertflow.alerts.errors import Conflict, InsertConflict, NotFoundDuringUpdate
from alertflow.alerts.gateway import PersistenceGateway, matches_identity
from alertflow.alerts.schemas import Alert, ChangeEvent

logger = logging.getLogger(__name__)


class InMemoryGateway(PersistenceGateway):
    """Dict-backed gateway with an append-only change log."""

    def __init__(self) -> None:
        self._alerts: dict[str, Alert] = {}
        self._changes: list[ChangeEvent] = []
        self._lock = asyncio.Lock()

    @property
    def alerts(self) -> list[Alert]:
        """Copies of all stored alerts (for inspection/testing)."""
        return [copy.deepcopy(a) for a in self._alerts.values()]

    async def find_by_key(
        self,
        resource: str,
        events: Sequence[str],
        environment: str,
        customer: str = "",
    ) -> list[Alert]:
        # Yield like a real round-trip so concurrent callers interleave
        await asyncio.sleep(0)
        return [
            copy.deepcopy(a)
            for a in self._alerts.values()
            if matches_identity(a, resource, events, environment, customer)
        ]

    async def get(self, alert_id: str) -> Alert | None:
        await asyncio.sleep(0)
        alert = self._alerts.get(alert_id)
        return copy.deepcopy(alert) if alert is not None else None

    async def insert(self, alert: Alert) -> str:
        async with self._lock:
            if alert.id in self._alerts:
                raise InsertConflict(f"Alert id {alert.id!r} already exists")
            for stored in self._alerts.values():
                if matches_identity(
                    stored,
                    alert.resource,
                    alert.match_events,
                    alert.environment,
                    alert.customer,
                ):
                    raise InsertConflict(
                        f"Identity {alert.identity!r} already stored as {stored.id}"
                    )

            record = replace(copy.deepcopy(alert), version=1)
            self._alerts[record.id] = record
            self._append_change(None, record, "insert")
            return record.id

    async def update_conditional(
        self,
        alert_id: str,
        expected_version: int,
        alert: Alert,
    ) -> int:
        async with self._lock:
            stored = self._alerts.get(alert_id)
            if stored is None:
                raise NotFoundDuringUpdate(alert_id)
            if stored.version != expected_version:
                raise Conflict(
                    f"Alert {alert_id!r} is at version {stored.version}, "
                    f"expected {expected_version}"
                )

            record = replace(copy.deepcopy(alert), id=alert_id, version=stored.version + 1)
            self._alerts[alert_id] = record
            self._append_change(stored, record, "update")
            return record.version

    async def delete(self, alert_id: str) -> bool:
        async with self._lock:
            return self._alerts.pop(alert_id, None) is not None

    async def read_changes(
        self,
        after_sequence: int,
        limit: int = 100,
    ) -> list[ChangeEvent]:
        await asyncio.sleep(0)
        # Sequences are 1-based list positions
        return [copy.deepcopy(c) for c in self._changes[after_sequence:after_sequence + limit]]

    async def latest_sequence(self) -> int:
        return len(self._changes)

    def _append_change(self, previous: Alert | None, current: Alert, kind: str) -> None:
        change = ChangeEvent(
            previous=copy.deepcopy(previous),
            current=copy.deepcopy(current),
            kind=kind,
            sequence=len(self._changes) + 1,
        )
        self._changes.append(change)
        logger.debug("Change %d recorded (%s %s)", change.sequence, kind, current.id)
