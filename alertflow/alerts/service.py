"""Alert service: the surface handed to the (external) HTTP layer.

Wraps the processor and the gateway behind three request/response
operations. Payload parsing lives here so the HTTP layer can pass raw
JSON bodies straight through.
"""

import logging
from typing import Any

from alertflow.alerts.config import AlertConfig
from alertflow.alerts.errors import AlertNotFound
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.processor import AlertProcessor
from alertflow.alerts.schemas import Alert

logger = logging.getLogger(__name__)


class AlertService:
    """Entry point for alert submission, lookup and deletion."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: AlertConfig | None = None,
        processor: AlertProcessor | None = None,
    ) -> None:
        self._gateway = gateway
        self._processor = processor or AlertProcessor(gateway, config=config)

    async def process_alert(self, draft: Alert | dict[str, Any]) -> str:
        """Submit an alert and return the id of its canonical record.

        Args:
            draft: An ``Alert`` or its serialized form.

        Returns:
            Stable id of the record the draft was folded into.

        Raises:
            InvalidAlert: Identity fields are missing.
            AmbiguousMatch: The store holds several records for the key.
            Conflict: Concurrent writers won every attempt.
        """
        if isinstance(draft, dict):
            draft = Alert.from_dict(draft)
        return await self._processor.process(draft)

    async def get_alert(self, alert_id: str) -> Alert:
        """Fetch an alert by id.

        Raises:
            AlertNotFound: No alert has this id.
        """
        alert = await self._gateway.get(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert

    async def delete_alert(self, alert_id: str) -> None:
        """Delete an alert (operator action, never used by processing).

        Raises:
            AlertNotFound: No alert has this id.
        """
        if not await self._gateway.delete(alert_id):
            raise AlertNotFound(alert_id)
        logger.info("Alert %s deleted", alert_id)
