"""Alert processing configuration.

All settings can be overridden via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for the alert processor."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    default_status: str = Field(
        default="open",
        min_length=1,
        description="Status given to new alerts submitted without one",
    )
    default_severity: str = Field(
        default="normal",
        min_length=1,
        description="Severity given to drafts submitted without one",
    )
    conflict_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Full resolve-then-mutate retries after a write conflict",
    )
