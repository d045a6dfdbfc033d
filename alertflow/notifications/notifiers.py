"""Notifier backends for change events.

Provides an ABC for notifiers plus three concrete backends: structured
logging, JSON webhooks and Redis pub/sub. A backend signals failure by
raising ``NotifierFailure``; the dispatcher decides what happens next.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
import redis.asyncio as redis
from redis.exceptions import RedisError

from alertflow.alerts.errors import NotifierFailure
from alertflow.alerts.schemas import ChangeEvent
from alertflow.config.settings import Settings, get_settings
from alertflow.notifications.config import NotifierConfig

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract base for notifier backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this notifier (e.g. 'webhook')."""

    @abstractmethod
    async def notify(self, event: ChangeEvent) -> None:
        """Deliver one change event.

        Raises:
            NotifierFailure: Delivery failed.
        """


class LogNotifier(Notifier):
    """Writes a one-line summary of every change to the log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    @property
    def name(self) -> str:
        return "log"

    async def notify(self, event: ChangeEvent) -> None:
        current = event.current
        previous_severity = event.previous.severity if event.previous else None
        logger.log(
            self._level,
            "Alert %s %s: %s/%s on %s (%s -> %s, status=%s, duplicates=%d)",
            current.id,
            event.kind,
            current.environment,
            current.event,
            current.resource,
            previous_severity,
            current.severity,
            current.status,
            current.duplicate_count,
        )


class WebhookNotifier(Notifier):
    """POSTs the serialized change event to an HTTP endpoint.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        name: str | None = None,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._name = name or "webhook"

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self._url

    async def notify(self, event: ChangeEvent) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=event.to_dict(),
                    headers=self._headers,
                )
        except httpx.TimeoutException as e:
            raise NotifierFailure(self.name, f"timed out posting to {self._url}") from e
        except httpx.HTTPError as e:
            raise NotifierFailure(self.name, f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise NotifierFailure(
                self.name, f"{self._url} returned {resp.status_code}",
            )


class RedisNotifier(Notifier):
    """Publishes serialized change events on a Redis pub/sub channel."""

    def __init__(self, redis_client: Any, channel: str) -> None:
        self._redis = redis_client
        self._channel = channel

    @classmethod
    def from_url(cls, redis_url: str, channel: str) -> "RedisNotifier":
        client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        return cls(client, channel)

    @property
    def name(self) -> str:
        return "redis"

    async def notify(self, event: ChangeEvent) -> None:
        payload = json.dumps({"type": "alert_change", "data": event.to_dict()})
        try:
            await self._redis.publish(self._channel, payload)
        except RedisError as e:
            raise NotifierFailure(self.name, str(e)) from e

    async def close(self) -> None:
        await self._redis.aclose()


def build_notifiers(
    config: NotifierConfig | None = None,
    settings: Settings | None = None,
) -> list[Notifier]:
    """Instantiate every notifier enabled in ``config``."""
    config = config or NotifierConfig()
    settings = settings or get_settings()

    notifiers: list[Notifier] = []
    if config.log_enabled:
        notifiers.append(LogNotifier())

    for i, url in enumerate(config.webhook_urls):
        name = "webhook" if len(config.webhook_urls) == 1 else f"webhook-{i + 1}"
        notifiers.append(
            WebhookNotifier(
                url=url,
                headers=config.webhook_headers,
                timeout=config.webhook_timeout,
                name=name,
            )
        )

    if config.redis_channel:
        notifiers.append(
            RedisNotifier.from_url(str(settings.redis_url), config.redis_channel)
        )

    logger.info("Notifiers configured: %s", [n.name for n in notifiers])
    return notifiers
