"""Notifier configuration.

Selects which notifier backends are built and how the dispatcher treats
them. All settings can be overridden via ``NOTIFIERS_*`` environment
variables (lists as JSON, e.g. ``NOTIFIERS_WEBHOOK_URLS='["https://..."]'``).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotifierConfig(BaseSettings):
    """Configuration for notifier backends and dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFIERS_",
        case_sensitive=False,
        extra="ignore",
    )

    log_enabled: bool = Field(
        default=True,
        description="Log every change event through the log notifier",
    )
    webhook_urls: list[str] = Field(
        default_factory=list,
        description="Endpoints that receive change events as JSON POSTs",
    )
    webhook_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers sent with every webhook request",
    )
    webhook_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="HTTP timeout for webhook calls in seconds",
    )
    redis_channel: str | None = Field(
        default=None,
        description="Redis pub/sub channel to publish change events on",
    )
    queue_size: int = Field(
        default=1000,
        ge=1,
        description="Pending events per notifier before new ones are dropped",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Upper bound on a single notify() call",
    )
