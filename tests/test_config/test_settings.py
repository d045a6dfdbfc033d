"""Tests for settings classes."""

import pytest
from pydantic import ValidationError

from alertflow.alerts.config import AlertConfig
from alertflow.config.settings import Settings, get_settings
from alertflow.feed.config import FeedConfig
from alertflow.notifications.config import NotifierConfig


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.auth_provider == "static"
        assert settings.token_ttl_hours == 48
        assert settings.auth_default_role == "user"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("AUTH_ADMIN_USERS", '["root"]')
        settings = Settings(_env_file=None)
        assert settings.is_production
        assert settings.auth_admin_users == ["root"]

    def test_short_signing_key_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, signing_key="short")

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestComponentConfigs:
    def test_alert_defaults(self):
        config = AlertConfig()
        assert config.default_status == "open"
        assert config.default_severity == "normal"
        assert config.conflict_retries == 1

    def test_alert_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ALERTS_CONFLICT_RETRIES", "3")
        assert AlertConfig().conflict_retries == 3

    def test_conflict_retries_bounded(self):
        with pytest.raises(ValidationError):
            AlertConfig(conflict_retries=10)

    def test_feed_defaults(self):
        config = FeedConfig()
        assert config.poll_interval_seconds == 5.0
        assert config.start_from == "latest"

    def test_feed_rejects_unknown_start(self):
        with pytest.raises(ValidationError):
            FeedConfig(start_from="middle")

    def test_feed_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FEED_POLL_INTERVAL_SECONDS", "0.5")
        assert FeedConfig().poll_interval_seconds == 0.5

    def test_notifier_lists_from_env(self, monkeypatch):
        monkeypatch.setenv("NOTIFIERS_WEBHOOK_URLS", '["https://a.example.com"]')
        monkeypatch.setenv("NOTIFIERS_LOG_ENABLED", "false")
        config = NotifierConfig()
        assert config.webhook_urls == ["https://a.example.com"]
        assert config.log_enabled is False
