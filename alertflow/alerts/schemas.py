"""Schema definitions for alert records and change events.

An ``Alert`` is the canonical record of one logical condition, keyed by
``(resource, event-or-correlate, environment, customer)``. The same class
doubles as the inbound draft: a draft simply has none of the
processing-owned fields filled in yet.

Records serialize to the camelCase layout used on the wire and in the
store (``duplicateCount``, ``lastReceiveTime`` ...).
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from alertflow.alerts.errors import InvalidAlert

ChangeKind = Literal["insert", "update"]

VALID_CHANGE_KINDS: frozenset[str] = frozenset({"insert", "update"})

STATUS_OPEN = "open"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class HistoryEvent:
    """Snapshot of an alert taken when its severity or status changed.

    Attributes:
        id: Identifier of the submission that caused the change.
        event: Event name as submitted (may be a correlate name).
        status: Status after the change.
        severity: Severity after the change.
        value: Event value after the change.
        type: Event type of the submission.
        text: Free-form text after the change.
        update_time: When the change was recorded.
    """

    id: str
    event: str
    severity: str
    update_time: datetime
    status: str = ""
    value: str = ""
    type: str = ""
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "status": self.status,
            "severity": self.severity,
            "value": self.value,
            "type": self.type,
            "text": self.text,
            "updateTime": _format_time(self.update_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEvent":
        return cls(
            id=data["id"],
            event=data.get("event", ""),
            status=data.get("status", ""),
            severity=data.get("severity", ""),
            value=data.get("value", ""),
            type=data.get("type", ""),
            text=data.get("text", ""),
            update_time=_parse_time(data.get("updateTime")) or utcnow(),
        )


# snake_case attribute -> serialized key, for everything that is not a
# plain string/list copied as-is
_KEY_MAP: dict[str, str] = {
    "event_type": "eventType",
    "raw_data": "rawData",
    "acknowledgement_duration": "acknowledgementDuration",
    "duplicate_count": "duplicateCount",
    "previous_severity": "previousSeverity",
    "trend_indication": "trendIndication",
    "last_receive_id": "lastReceiveId",
}

_TIME_FIELDS: dict[str, str] = {
    "create_time": "createTime",
    "receive_time": "receiveTime",
    "last_receive_time": "lastReceiveTime",
}


@dataclass
class Alert:
    """Canonical alert record (and inbound draft).

    Identity fields (``id``, ``resource``, ``event``, ``environment``,
    ``customer``) never change once the record exists. ``version`` is the
    storage-owned concurrency token and is not part of the serialized
    record.
    """

    resource: str
    event: str
    environment: str
    severity: str = ""
    id: str = ""
    customer: str = ""
    status: str = ""
    correlate: list[str] = field(default_factory=list)
    service: list[str] = field(default_factory=list)
    group: str = ""
    value: str = ""
    text: str = ""
    tags: list[str] = field(default_factory=list)
    attributes: dict[str, str] | None = None
    origin: str = ""
    event_type: str = ""
    raw_data: str = ""
    timeout: int = 0
    acknowledgement_duration: int = 0

    # Set by the processor
    duplicate_count: int = 0
    repeat: bool = False
    previous_severity: str = ""
    trend_indication: str = ""
    create_time: datetime | None = None
    receive_time: datetime | None = None
    last_receive_id: str = ""
    last_receive_time: datetime | None = None
    history: list[HistoryEvent] = field(default_factory=list)

    version: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("resource", "event", "environment")
            if not (getattr(self, name) or "").strip()
        ]
        if missing:
            raise InvalidAlert(f"Alert is missing required fields: {missing}")
        if self.duplicate_count < 0:
            raise InvalidAlert("duplicate_count must be >= 0")

    @property
    def identity(self) -> tuple[str, str, str, str]:
        """``(resource, event, environment, customer)`` of this alert."""
        return (self.resource, self.event, self.environment, self.customer)

    @property
    def match_events(self) -> list[str]:
        """The event name followed by its correlate names, deduplicated."""
        names = [self.event]
        for name in self.correlate:
            if name not in names:
                names.append(name)
        return names

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-serializable stored layout."""
        data: dict[str, Any] = {
            "id": self.id,
            "resource": self.resource,
            "event": self.event,
            "environment": self.environment,
            "severity": self.severity,
            "correlate": list(self.correlate),
            "status": self.status,
            "service": list(self.service),
            "group": self.group,
            "value": self.value,
            "text": self.text,
            "tags": list(self.tags),
            "attributes": dict(self.attributes or {}),
            "origin": self.origin,
            "timeout": self.timeout,
            "customer": self.customer,
            "repeat": self.repeat,
            "history": [h.to_dict() for h in self.history],
        }
        for attr, key in _KEY_MAP.items():
            data[key] = getattr(self, attr)
        for attr, key in _TIME_FIELDS.items():
            data[key] = _format_time(getattr(self, attr))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from its stored layout or an inbound payload.

        Raises:
            InvalidAlert: If identity fields are missing.
        """
        if isinstance(data.get("attributes"), str):
            data = {**data, "attributes": json.loads(data["attributes"])}

        kwargs: dict[str, Any] = {
            "resource": data.get("resource", ""),
            "event": data.get("event", ""),
            "environment": data.get("environment", ""),
            "severity": data.get("severity") or "",
            "id": data.get("id") or "",
            "customer": data.get("customer") or "",
            "status": data.get("status") or "",
            "correlate": list(data.get("correlate") or []),
            "service": list(data.get("service") or []),
            "group": data.get("group") or "",
            "value": data.get("value") or "",
            "text": data.get("text") or "",
            "tags": list(data.get("tags") or []),
            "attributes": data.get("attributes"),
            "origin": data.get("origin") or "",
            "timeout": int(data.get("timeout") or 0),
            "repeat": bool(data.get("repeat", False)),
            "history": [HistoryEvent.from_dict(h) for h in data.get("history") or []],
        }
        for attr, key in _KEY_MAP.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        for attr, key in _TIME_FIELDS.items():
            kwargs[attr] = _parse_time(data.get(key))

        kwargs["acknowledgement_duration"] = int(
            kwargs.get("acknowledgement_duration") or 0
        )
        kwargs["duplicate_count"] = int(kwargs.get("duplicate_count") or 0)
        return cls(**kwargs)


@dataclass(frozen=True)
class ChangeEvent:
    """One committed mutation read from the change feed.

    Attributes:
        previous: Record before the mutation (None for inserts).
        current: Record after the mutation.
        kind: ``insert`` or ``update``.
        sequence: Feed position; strictly increasing in commit order.
    """

    current: Alert
    kind: ChangeKind
    sequence: int
    previous: Alert | None = None

    def __post_init__(self) -> None:
        if self.kind not in VALID_CHANGE_KINDS:
            raise ValueError(
                f"Invalid change kind {self.kind!r}. "
                f"Must be one of: {sorted(VALID_CHANGE_KINDS)}"
            )

    @property
    def alert_id(self) -> str:
        return self.current.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "kind": self.kind,
            "previous": self.previous.to_dict() if self.previous else None,
            "current": self.current.to_dict(),
        }
