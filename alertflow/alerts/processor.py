"""Alert processor: the new / duplicate / correlated-change state machine.

Every submission resolves its identity against the store, builds the
next version of the record and writes it back with a conditional write.
The processor keeps no state between calls; the store is the only
source of truth. A lost write (``Conflict``) restarts the whole
resolve-then-mutate sequence, up to ``AlertConfig.conflict_retries``
times, before the error reaches the caller.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Literal

from alertflow.alerts.config import AlertConfig
from alertflow.alerts.errors import Conflict
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.history import append_history, snapshot
from alertflow.alerts.identity import IdentityResolver
from alertflow.alerts.schemas import Alert, utcnow
from alertflow.alerts.severity import same_severity, trend
from alertflow.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

Outcome = Literal["new", "duplicate", "correlated"]


def _new_id() -> str:
    return str(uuid.uuid4())


class AlertProcessor:
    """Turns alert drafts into canonical records.

    Args:
        gateway: Persistence gateway shared with the rest of the process.
        config: Processing defaults and retry budget.
        clock: Returns the current UTC time (injectable for tests).
        id_factory: Returns a fresh unique id.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: AlertConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._gateway = gateway
        self._config = config or AlertConfig()
        self._resolver = IdentityResolver(gateway)
        self._clock = clock
        self._id_factory = id_factory

    async def process(self, draft: Alert) -> str:
        """Apply one submission and return the id of the canonical record.

        Raises:
            AmbiguousMatch: The store holds several records for the key.
            Conflict: Concurrent writers kept winning after all retries.
        """
        draft = self._normalize(draft)
        attempts = self._config.conflict_retries + 1

        attempt = 1
        while True:
            try:
                return await self._process_once(draft)
            except Conflict as e:
                get_metrics().record_conflict(type(e).__name__)
                if attempt >= attempts:
                    logger.error(
                        "Giving up on %s after %d attempts: %s",
                        draft.identity, attempt, e,
                    )
                    raise
                logger.warning(
                    "Write conflict for %s (attempt %d), retrying: %s",
                    draft.identity, attempt, e,
                )
                attempt += 1

    async def _process_once(self, draft: Alert) -> str:
        existing = await self._resolver.resolve(draft)
        now = self._clock()

        if existing is None:
            alert_id = self._id_factory()
            alert = self._create(draft, alert_id, draft.id or alert_id, now)
            await self._gateway.insert(alert)
            self._record(alert, "new")
            return alert.id

        receive_id = draft.id or self._id_factory()
        status = draft.status or existing.status
        changed = (
            not same_severity(draft.severity, existing.severity)
            or status != existing.status
        )

        if changed:
            alert = self._apply_change(existing, draft, status, receive_id, now)
            outcome: Outcome = "correlated"
        else:
            alert = self._apply_duplicate(existing, receive_id, now)
            outcome = "duplicate"

        await self._gateway.update_conditional(existing.id, existing.version, alert)
        self._record(alert, outcome)
        return existing.id

    def _normalize(self, draft: Alert) -> Alert:
        if draft.severity.strip():
            return draft
        return replace(draft, severity=self._config.default_severity)

    def _create(
        self, draft: Alert, alert_id: str, receive_id: str, now: datetime,
    ) -> Alert:
        alert = replace(
            draft,
            id=alert_id,
            status=draft.status or self._config.default_status,
            attributes=dict(draft.attributes) if draft.attributes is not None else {},
            create_time=now,
            receive_time=now,
            last_receive_time=now,
            last_receive_id=receive_id,
            duplicate_count=0,
            repeat=False,
            previous_severity="",
            trend_indication="",
            history=[],
            version=0,
        )
        return replace(alert, history=[snapshot(alert, now, event_id=receive_id)])

    @staticmethod
    def _apply_duplicate(existing: Alert, receive_id: str, now: datetime) -> Alert:
        return replace(
            existing,
            duplicate_count=existing.duplicate_count + 1,
            repeat=True,
            receive_time=now,
            last_receive_time=now,
            last_receive_id=receive_id,
        )

    @staticmethod
    def _apply_change(
        existing: Alert,
        draft: Alert,
        status: str,
        receive_id: str,
        now: datetime,
    ) -> Alert:
        updated = replace(
            existing,
            previous_severity=existing.severity,
            trend_indication=trend(existing.severity, draft.severity),
            duplicate_count=0,
            repeat=False,
            severity=draft.severity,
            status=status,
            value=draft.value,
            text=draft.text,
            receive_time=now,
            last_receive_time=now,
            last_receive_id=receive_id,
        )
        return append_history(updated, now, event=draft.event)

    @staticmethod
    def _record(alert: Alert, outcome: Outcome) -> None:
        get_metrics().record_processed(outcome)
        logger.info(
            "Alert %s processed as %s (severity=%s, status=%s, duplicates=%d)",
            alert.id, outcome, alert.severity, alert.status, alert.duplicate_count,
        )
