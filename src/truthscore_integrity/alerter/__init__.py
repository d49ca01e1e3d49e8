"""Alerting layer - deduplication, storage and notification of gaming alerts."""

from truthscore_integrity.alerter.dispatcher import (
    AlertChannel,
    AlertDispatcher,
    CircuitBreakerState,
    DispatchResult,
    LogChannel,
)
from truthscore_integrity.alerter.history import AlertHistory
from truthscore_integrity.alerter.sink import AlertSink

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AlertHistory",
    "AlertSink",
    "CircuitBreakerState",
    "DispatchResult",
    "LogChannel",
]
