"""Change-feed consumer and its reconnect policy."""

from alertflow.feed.config import FeedConfig
from alertflow.feed.consumer import ChangeFeedConsumer
from alertflow.feed.reconnect import ReconnectPolicy

__all__ = ["ChangeFeedConsumer", "FeedConfig", "ReconnectPolicy"]
