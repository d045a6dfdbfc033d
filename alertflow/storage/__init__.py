"""Storage layer for alert persistence."""

from alertflow.storage.database import Database

__all__ = ["Database"]
