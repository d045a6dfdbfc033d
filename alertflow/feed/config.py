"""Change-feed consumer configuration.

All settings can be overridden via ``FEED_*`` environment variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedConfig(BaseSettings):
    """Configuration for the change-feed consumer."""

    model_config = SettingsConfigDict(
        env_prefix="FEED_",
        case_sensitive=False,
        extra="ignore",
    )

    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=3600.0,
        description="Seconds between change-feed polls once the feed is drained",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Changes read per round-trip while draining",
    )
    start_from: Literal["latest", "earliest"] = Field(
        default="latest",
        description="Where a fresh consumer starts reading the feed",
    )

    # Reconnect pauses after read failures (see feed.reconnect)
    backoff_base_delay: float = Field(default=1.0, gt=0.0)
    backoff_max_delay: float = Field(default=60.0, gt=0.0)
