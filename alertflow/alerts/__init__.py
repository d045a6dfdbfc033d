"""Alert identity and correlation engine.

Components:
- Alert / HistoryEvent / ChangeEvent: Dataclasses for records and feed entries
- Severity ranking: Explicit rank table used for trend computation
- IdentityResolver: Finds the stored record for an incoming draft
- AlertProcessor: new / duplicate / correlated-change state machine
- append_history: Pure history logger
- PersistenceGateway: Storage ABC, with InMemoryGateway and PostgresAlertGateway
- AlertService: Process / get / delete surface for the HTTP layer
- AlertConfig: Pydantic settings for processing defaults
"""

from alertflow.alerts.config import AlertConfig
from alertflow.alerts.errors import (
    AlertFlowError,
    AlertNotFound,
    AmbiguousMatch,
    Conflict,
    InsertConflict,
    InvalidAlert,
    NotFoundDuringUpdate,
    NotifierFailure,
    StreamDisconnected,
)
from alertflow.alerts.gateway import PersistenceGateway
from alertflow.alerts.history import append_history
from alertflow.alerts.identity import IdentityResolver
from alertflow.alerts.memory import InMemoryGateway
from alertflow.alerts.processor import AlertProcessor
from alertflow.alerts.repository import PostgresAlertGateway
from alertflow.alerts.schemas import Alert, ChangeEvent, HistoryEvent
from alertflow.alerts.service import AlertService
from alertflow.alerts.severity import SEVERITY_RANKS, severity_rank, trend

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertFlowError",
    "AlertNotFound",
    "AlertProcessor",
    "AlertService",
    "AmbiguousMatch",
    "ChangeEvent",
    "Conflict",
    "HistoryEvent",
    "IdentityResolver",
    "InMemoryGateway",
    "InsertConflict",
    "InvalidAlert",
    "NotFoundDuringUpdate",
    "NotifierFailure",
    "PersistenceGateway",
    "PostgresAlertGateway",
    "SEVERITY_RANKS",
    "StreamDisconnected",
    "append_history",
    "severity_rank",
    "trend",
]
