"""Severity ranking table and trend computation.

Severities are compared by an explicit rank rather than by name so the
trend of a change is deterministic. Higher rank means more severe.
Lookups are case-insensitive; anything outside the table ranks as
``unknown``.
"""

from typing import Literal

TrendIndication = Literal["moreSevere", "lessSevere", "noChange"]

MORE_SEVERE: TrendIndication = "moreSevere"
LESS_SEVERE: TrendIndication = "lessSevere"
NO_CHANGE: TrendIndication = "noChange"

DEFAULT_SEVERITY = "normal"
UNKNOWN_SEVERITY = "unknown"

SEVERITY_RANKS: dict[str, int] = {
    "security": 12,
    "critical": 11,
    "major": 10,
    "minor": 9,
    "warning": 8,
    "indeterminate": 7,
    "informational": 6,
    "normal": 5,
    "ok": 4,
    "cleared": 3,
    "debug": 2,
    "trace": 1,
    "unknown": 0,
}


def normalize_severity(severity: str | None) -> str:
    """Canonical (lower-case, stripped) form of a severity name."""
    return (severity or "").strip().lower()


def severity_rank(severity: str | None) -> int:
    """Rank of ``severity``; unrecognized names rank as ``unknown``."""
    return SEVERITY_RANKS.get(
        normalize_severity(severity), SEVERITY_RANKS[UNKNOWN_SEVERITY]
    )


def is_known_severity(severity: str | None) -> bool:
    return normalize_severity(severity) in SEVERITY_RANKS


def same_severity(a: str | None, b: str | None) -> bool:
    return normalize_severity(a) == normalize_severity(b)


def trend(previous: str | None, current: str | None) -> TrendIndication:
    """Classify a move from ``previous`` to ``current`` severity."""
    old_rank = severity_rank(previous)
    new_rank = severity_rank(current)
    if new_rank > old_rank:
        return MORE_SEVERE
    if new_rank < old_rank:
        return LESS_SEVERE
    return NO_CHANGE
