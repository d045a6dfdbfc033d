"""History log for alerts.

Pure helpers: they build a ``HistoryEvent`` from an alert snapshot and
return a new alert with the entry appended. Persisting the result is the
caller's job.
"""

import uuid
from dataclasses import replace
from datetime import datetime

from alertflow.alerts.schemas import Alert, HistoryEvent


def snapshot(
    alert: Alert,
    update_time: datetime,
    event_id: str | None = None,
    event: str | None = None,
) -> HistoryEvent:
    """Capture the state-bearing fields of ``alert`` as a history entry."""
    return HistoryEvent(
        id=event_id or str(uuid.uuid4()),
        event=event or alert.event,
        status=alert.status,
        severity=alert.severity,
        value=alert.value,
        type=alert.event_type,
        text=alert.text,
        update_time=update_time,
    )


def append_history(
    alert: Alert,
    update_time: datetime,
    event_id: str | None = None,
    event: str | None = None,
) -> Alert:
    """Return a copy of ``alert`` with one new entry at the end of its history.

    Entries are kept oldest first; existing entries are never touched.

    Args:
        alert: Alert already carrying its new state.
        update_time: Timestamp of the change.
        event_id: Id for the entry (a fresh uuid4 when omitted).
        event: Event name that caused the change, if it differs from
            ``alert.event`` (a correlated event).
    """
    entry = snapshot(alert, update_time, event_id=event_id, event=event)
    return replace(alert, history=[*alert.history, entry])
