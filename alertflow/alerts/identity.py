"""Identity resolution for incoming alerts.

Reads go straight to the gateway on every call. Two processors racing on
the same key must see each other's writes, so nothing is cached here.
"""

import logging

from alertflow.alerts.errors import AmbiguousMatch
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.schemas import Alert

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Finds the stored alert an incoming draft belongs to."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway

    async def resolve(self, draft: Alert) -> Alert | None:
        """Return the stored alert matching ``draft``'s identity key.

        A stored alert matches when resource, environment and customer are
        equal and its event equals the draft's event, or the two events
        are linked through either side's correlate set.

        Returns:
            The stored alert (with its version), or None if not found.

        Raises:
            AmbiguousMatch: More than one stored alert matches.
        """
        candidates = await self._gateway.find_by_key(
            draft.resource,
            draft.match_events,
            draft.environment,
            draft.customer,
        )

        if not candidates:
            return None

        if len(candidates) > 1:
            ids = sorted(c.id for c in candidates)
            logger.error(
                "Identity %s matches %d stored alerts: %s",
                draft.identity, len(ids), ids,
            )
            raise AmbiguousMatch(draft.identity, ids)

        return candidates[0]
