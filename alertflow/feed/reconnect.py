"""
Reconnect policy for the change-feed consumer.

A run of failed reads is an outage. While an outage lasts, each failure
yields the next pause before the consumer reads again from its cursor;
the first successful read ends the outage and reports how long it ran.

Pauses use decorrelated jitter: the first pause is the base delay, each
later one is drawn between the base and three times the previous pause,
capped at the maximum. Consumers on several hosts that lost the same
database therefore spread their reconnects instead of retrying in step.
"""

import random
import time
from collections.abc import Callable

from alertflow.feed.config import FeedConfig


class ReconnectPolicy:
    """
    Pause schedule and outage bookkeeping for change-feed reads.

    Usage:
        policy = ReconnectPolicy.from_config(config)
        try:
            batch = await gateway.read_changes(cursor, limit)
        except StreamDisconnected as e:
            await asyncio.sleep(policy.record_failure(e))
        else:
            outage = policy.record_success()
    """

    def __init__(
        self,
        base_delay: float,
        max_delay: float,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if base_delay <= 0:
            raise ValueError(f"base_delay must be positive, got {base_delay}")
        self.base_delay = base_delay
        self.max_delay = max(max_delay, base_delay)
        self._rng = rng or random.Random()
        self._clock = clock

        self._failures = 0
        self._previous = 0.0
        self._outage_started: float | None = None
        self.last_error: str | None = None

    @classmethod
    def from_config(cls, config: FeedConfig, **kwargs) -> "ReconnectPolicy":
        return cls(config.backoff_base_delay, config.backoff_max_delay, **kwargs)

    @property
    def failures(self) -> int:
        """Failed reads in the current outage (0 when connected)."""
        return self._failures

    @property
    def in_outage(self) -> bool:
        return self._outage_started is not None

    def record_failure(self, error: Exception) -> float:
        """Note a failed read and return the pause before the next one."""
        if self._outage_started is None:
            self._outage_started = self._clock()
            delay = self.base_delay
        else:
            upper = max(self.base_delay, self._previous * 3)
            delay = min(self._rng.uniform(self.base_delay, upper), self.max_delay)

        self._failures += 1
        self._previous = delay
        self.last_error = str(error)
        return delay

    def record_success(self) -> float | None:
        """
        Note a successful read.

        Returns:
            Seconds the outage lasted if this read ended one, else None.
        """
        if self._outage_started is None:
            return None
        outage = self._clock() - self._outage_started
        self._failures = 0
        self._previous = 0.0
        self._outage_started = None
        self.last_error = None
        return outage
