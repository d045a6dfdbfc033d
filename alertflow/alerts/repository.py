"""PostgreSQL persistence gateway.

Alerts are stored as JSONB documents in the ``alerts`` table next to the
identity columns used for matching. Every insert and update also writes
a row to ``alert_changes`` inside the same transaction; that table is the
change feed read by ``ChangeFeedConsumer``.

Two transaction-scoped advisory locks keep the invariants:

- an identity lock on ``(resource, environment, customer)`` taken before
  an insert re-checks for a match, so two racing "new alert" paths
  cannot both insert;
- a feed lock taken right before the change row is written, so the
  ``BIGSERIAL`` sequence order is the commit order.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

import asyncpg

from alertflow.alerts.errors import (
    Conflict,
    InsertConflict,
    NotFoundDuringUpdate,
    StreamDisconnected,
)
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.schemas import Alert, ChangeEvent
from alertflow.storage.database import Database

logger = logging.getLogger(__name__)

# Arbitrary constant shared by every writer of alert_changes
FEED_LOCK_KEY = 0x616C6572  # "aler"

_DISCONNECT_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.CannotConnectNowError,
    ConnectionError,
    OSError,
)

_MATCH_CONDITION = """
    resource = $1 AND environment = $2 AND customer = $3
    AND (event = ANY($4::text[]) OR $5 = ANY(correlate))
"""


class PostgresAlertGateway(PersistenceGateway):
    """asyncpg-backed gateway over the ``alerts`` and ``alert_changes`` tables."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create tables and indexes if they don't exist."""
        create_sql = """
        CREATE TABLE IF NOT EXISTS alerts (
            id TEXT PRIMARY KEY,
            resource TEXT NOT NULL,
            event TEXT NOT NULL,
            environment TEXT NOT NULL,
            customer TEXT NOT NULL DEFAULT '',
            correlate TEXT[] NOT NULL DEFAULT '{}',
            severity TEXT NOT NULL,
            status TEXT NOT NULL,
            doc JSONB NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            last_receive_time TIMESTAMPTZ,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_alerts_identity
            ON alerts (resource, event, environment, customer);
        CREATE INDEX IF NOT EXISTS idx_alerts_correlate
            ON alerts USING GIN (correlate);

        CREATE TABLE IF NOT EXISTS alert_changes (
            sequence BIGSERIAL PRIMARY KEY,
            alert_id TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('insert', 'update')),
            old_doc JSONB,
            new_doc JSONB NOT NULL,
            committed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """
        await self._db.execute(create_sql)
        logger.info("Alert tables ready")

    async def find_by_key(
        self,
        resource: str,
        events: Sequence[str],
        environment: str,
        customer: str = "",
    ) -> list[Alert]:
        if not events:
            return []
        sql = f"SELECT doc, version FROM alerts WHERE {_MATCH_CONDITION}"
        rows = await self._db.fetch(
            sql, resource, environment, customer or "", list(events), events[0],
        )
        return [_row_to_alert(row) for row in rows]

    async def get(self, alert_id: str) -> Alert | None:
        row = await self._db.fetchrow(
            "SELECT doc, version FROM alerts WHERE id = $1", alert_id,
        )
        if row is None:
            return None
        return _row_to_alert(row)

    async def insert(self, alert: Alert) -> str:
        doc = alert.to_dict()
        scope = "\x1f".join((alert.resource, alert.environment, alert.customer or ""))

        try:
            async with self._db.transaction() as conn:
                await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", scope)

                existing = await conn.fetchval(
                    f"SELECT id FROM alerts WHERE {_MATCH_CONDITION} LIMIT 1",
                    alert.resource,
                    alert.environment,
                    alert.customer or "",
                    alert.match_events,
                    alert.event,
                )
                if existing is not None:
                    raise InsertConflict(
                        f"Identity {alert.identity!r} already stored as {existing}"
                    )

                await conn.execute(
                    """
                    INSERT INTO alerts (
                        id, resource, event, environment, customer, correlate,
                        severity, status, doc, version, last_receive_time
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, 1, $10)
                    """,
                    alert.id,
                    alert.resource,
                    alert.event,
                    alert.environment,
                    alert.customer or "",
                    list(alert.correlate),
                    alert.severity,
                    alert.status,
                    doc,
                    alert.last_receive_time,
                )
                await self._record_change(conn, alert.id, "insert", None, doc)
        except asyncpg.UniqueViolationError as e:
            raise InsertConflict(str(e)) from e

        return alert.id

    async def update_conditional(
        self,
        alert_id: str,
        expected_version: int,
        alert: Alert,
    ) -> int:
        doc = alert.to_dict()

        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                "SELECT doc, version FROM alerts WHERE id = $1 FOR UPDATE", alert_id,
            )
            if row is None:
                raise NotFoundDuringUpdate(alert_id)
            if row["version"] != expected_version:
                raise Conflict(
                    f"Alert {alert_id!r} is at version {row['version']}, "
                    f"expected {expected_version}"
                )

            new_version = expected_version + 1
            await conn.execute(
                """
                UPDATE alerts
                SET severity = $2, status = $3, correlate = $4, doc = $5::jsonb,
                    version = $6, last_receive_time = $7, updated_at = NOW()
                WHERE id = $1
                """,
                alert_id,
                alert.severity,
                alert.status,
                list(alert.correlate),
                doc,
                new_version,
                alert.last_receive_time,
            )
            await self._record_change(conn, alert_id, "update", _load_doc(row["doc"]), doc)

        return new_version

    async def delete(self, alert_id: str) -> bool:
        result = await self._db.fetchval(
            "DELETE FROM alerts WHERE id = $1 RETURNING id", alert_id,
        )
        return result is not None

    async def read_changes(
        self,
        after_sequence: int,
        limit: int = 100,
    ) -> list[ChangeEvent]:
        sql = """
            SELECT sequence, kind, old_doc, new_doc
            FROM alert_changes
            WHERE sequence > $1
            ORDER BY sequence
            LIMIT $2
        """
        try:
            rows = await self._db.fetch(sql, after_sequence, limit)
        except _DISCONNECT_ERRORS as e:
            raise StreamDisconnected(f"Change feed read failed: {e}") from e
        return [_row_to_change(row) for row in rows]

    async def latest_sequence(self) -> int:
        try:
            value = await self._db.fetchval(
                "SELECT COALESCE(MAX(sequence), 0) FROM alert_changes"
            )
        except _DISCONNECT_ERRORS as e:
            raise StreamDisconnected(f"Change feed head lookup failed: {e}") from e
        return int(value or 0)

    async def health_check(self) -> bool:
        return await self._db.health_check()

    @staticmethod
    async def _record_change(
        conn: Any,
        alert_id: str,
        kind: str,
        old_doc: dict[str, Any] | None,
        new_doc: dict[str, Any],
    ) -> None:
        await conn.execute("SELECT pg_advisory_xact_lock($1)", FEED_LOCK_KEY)
        await conn.execute(
            """
            INSERT INTO alert_changes (alert_id, kind, old_doc, new_doc)
            VALUES ($1, $2, $3::jsonb, $4::jsonb)
            """,
            alert_id,
            kind,
            old_doc,
            new_doc,
        )


def _load_doc(doc: Any) -> dict[str, Any]:
    if isinstance(doc, str):
        return json.loads(doc)
    return dict(doc)


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record (doc, version) to an Alert."""
    alert = Alert.from_dict(_load_doc(row["doc"]))
    alert.version = row["version"]
    return alert


def _row_to_change(row: Any) -> ChangeEvent:
    """Convert an ``alert_changes`` row to a ChangeEvent."""
    old_doc = row.get("old_doc")
    return ChangeEvent(
        sequence=row["sequence"],
        kind=row["kind"],
        previous=Alert.from_dict(_load_doc(old_doc)) if old_doc is not None else None,
        current=Alert.from_dict(_load_doc(row["new_doc"])),
    )
