"""Threshold alert with a recovery countdown.

The alert fires while the average request rate is above the threshold. Once
the rate drops back, the alert reports "recovering" for a fixed number of
ticks before clearing. A new breach always wins over the countdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_RECOVERY_COUNTDOWN = 3


@dataclass(frozen=True, slots=True)
class AlertState:
    firing: bool = False
    recovering: bool = False
    recovery_countdown: int = 0


def next_alert_state(
    state: AlertState,
    avg: float,
    *,
    threshold: float,
    recovery_countdown: int = DEFAULT_RECOVERY_COUNTDOWN,
) -> AlertState:
    """Advance the alert by one tick given the current average rate."""
    if avg > threshold:
        return AlertState(firing=True)
    if state.firing:
        return AlertState(recovering=True, recovery_countdown=recovery_countdown)
    if state.recovering:
        if state.recovery_countdown == 0:
            return AlertState()
        return AlertState(recovering=True, recovery_countdown=state.recovery_countdown - 1)
    return state


class AlertEvaluator:
    """Own an AlertState and advance it once per tick."""

    def __init__(
        self,
        threshold: float,
        interval_seconds: int,
        recovery_countdown: int = DEFAULT_RECOVERY_COUNTDOWN,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if recovery_countdown < 0:
            raise ValueError("recovery_countdown must be >= 0")
        self.threshold = threshold
        self.interval_seconds = interval_seconds
        self.recovery_countdown = recovery_countdown
        self.state = AlertState()

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the trailing [now - interval, now] window."""
        return now - timedelta(seconds=self.interval_seconds), now

    def evaluate(self, avg: float) -> AlertState:
        self.state = next_alert_state(
            self.state,
            avg,
            threshold=self.threshold,
            recovery_countdown=self.recovery_countdown,
        )
        return self.state
