"""Error taxonomy for alert processing and the change-feed pipeline.

- ``AlertNotFound``: lookup miss, the caller decides what to do.
- ``AmbiguousMatch``: more than one stored alert matches an identity key.
  Fatal to the request and never retried.
- ``Conflict`` and its subclasses: optimistic concurrency lost. The
  processor retries the whole resolve-then-mutate sequence once.
- ``StreamDisconnected``: the change feed could not be read. The consumer
  backs off and retries forever.
- ``NotifierFailure``: a notifier backend rejected an event. Logged by the
  dispatcher, never propagated.
"""


class AlertFlowError(Exception):
    """Base class for all alertflow errors."""


class InvalidAlert(AlertFlowError, ValueError):
    """An alert draft is missing identity fields or is malformed."""


class AlertNotFound(AlertFlowError, LookupError):
    """No alert exists with the requested id."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert {alert_id!r} not found")
        self.alert_id = alert_id


class AmbiguousMatch(AlertFlowError):
    """More than one stored alert matches a single identity key."""

    def __init__(self, identity: tuple[str, ...], alert_ids: list[str]) -> None:
        super().__init__(
            f"Identity {identity!r} matches {len(alert_ids)} alerts: {alert_ids}"
        )
        self.identity = identity
        self.alert_ids = alert_ids


class Conflict(AlertFlowError):
    """A conditional write lost against a concurrent writer."""


class NotFoundDuringUpdate(Conflict):
    """The record disappeared between resolve and update."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert {alert_id!r} vanished before update")
        self.alert_id = alert_id


class InsertConflict(Conflict):
    """Another writer inserted an alert with the same identity first."""


class StreamDisconnected(AlertFlowError):
    """The change-feed subscription was lost (distinct from "no data")."""


class NotifierFailure(AlertFlowError):
    """A notifier backend failed to deliver a change event."""

    def __init__(self, notifier: str, reason: str) -> None:
        super().__init__(f"Notifier {notifier!r} failed: {reason}")
        self.notifier = notifier
        self.reason = reason
