"""Persistence gateway interface.

The alert core talks to storage only through this ABC. Implementations
are handed in by the caller (see ``InMemoryGateway`` and
``PostgresAlertGateway``); nothing here holds process-wide state.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from alertflow.alerts.schemas import Alert, ChangeEvent


def matches_identity(
    stored: Alert,
    resource: str,
    events: Sequence[str],
    environment: str,
    customer: str,
) -> bool:
    """Check whether ``stored`` is the record for an incoming identity.

    ``events`` is the incoming event name followed by its correlate
    names. A record matches when scope fields are equal and either its
    event is one of ``events`` or the incoming event (``events[0]``)
    appears in the record's own correlate set.
    """
    if (
        stored.resource != resource
        or stored.environment != environment
        or (stored.customer or "") != (customer or "")
    ):
        return False
    if not events:
        return False
    return stored.event in events or events[0] in stored.correlate


class PersistenceGateway(ABC):
    """Storage operations needed by the processor and the feed consumer."""

    @abstractmethod
    async def find_by_key(
        self,
        resource: str,
        events: Sequence[str],
        environment: str,
        customer: str = "",
    ) -> list[Alert]:
        """Return every stored alert matching the identity key.

        Args:
            resource: Resource under alarm.
            events: Incoming event name followed by its correlate names.
            environment: Environment namespace.
            customer: Tenant scope ("" for none).
        """

    @abstractmethod
    async def get(self, alert_id: str) -> Alert | None:
        """Fetch one alert by id, or None."""

    @abstractmethod
    async def insert(self, alert: Alert) -> str:
        """Insert a new alert and record an ``insert`` change.

        Raises:
            InsertConflict: A record with the same identity already exists.
        """

    @abstractmethod
    async def update_conditional(
        self,
        alert_id: str,
        expected_version: int,
        alert: Alert,
    ) -> int:
        """Replace a record if it is still at ``expected_version``.

        Records an ``update`` change carrying the previous and new record.

        Returns:
            The new version.

        Raises:
            Conflict: The stored version differs.
            NotFoundDuringUpdate: The record no longer exists.
        """

    @abstractmethod
    async def delete(self, alert_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""

    @abstractmethod
    async def read_changes(
        self,
        after_sequence: int,
        limit: int = 100,
    ) -> list[ChangeEvent]:
        """Read committed changes with ``sequence > after_sequence``.

        An empty list means no new data.

        Raises:
            StreamDisconnected: The feed could not be read.
        """

    @abstractmethod
    async def latest_sequence(self) -> int:
        """Sequence of the most recent committed change (0 if none)."""

    async def health_check(self) -> bool:
        return True
