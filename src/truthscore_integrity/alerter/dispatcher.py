"""Alert dispatcher for multi-channel notification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from truthscore_integrity.detector.models import Alert

logger = logging.getLogger(__name__)

_SEVERITY_LEVELS = {
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "CRITICAL": logging.CRITICAL,
}


class AlertChannel(Protocol):
    """Protocol for alert notification channels."""

    name: str

    async def send(self, alert: Alert) -> bool:
        """Send alert to channel. Returns True on success."""
        ...


class LogChannel:
    """Channel that writes alerts to a logger at their severity level."""

    def __init__(
        self,
        name: str = "log",
        logger_name: str = "truthscore_integrity.alerts",
    ) -> None:
        self.name = name
        self._logger = logging.getLogger(logger_name)

    async def send(self, alert: Alert) -> bool:
        """Log the alert. Always succeeds."""
        self._logger.log(
            _SEVERITY_LEVELS.get(alert.severity.value, logging.WARNING),
            "[%s] %s wallets=%s action=%s id=%s",
            alert.type.value,
            alert.evidence.description,
            ",".join(w[:10] for w in sorted(alert.wallets)),
            alert.recommended_action.value,
            alert.id,
        )
        return True


@dataclass
class CircuitBreakerState:
    """State for circuit breaker pattern.

    Tracks failures and manages open/closed state for a channel.
    """

    failure_count: int = 0
    last_failure_time: datetime | None = None
    is_open: bool = False
    half_open_attempts: int = 0


@dataclass
class DispatchResult:
    """Result of dispatching an alert to all channels."""

    success_count: int
    failure_count: int
    channel_results: dict[str, bool] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def all_succeeded(self) -> bool:
        """Return True if all channels succeeded."""
        return self.failure_count == 0 and self.success_count > 0


class AlertDispatcher:
    """Dispatcher for sending alerts to multiple channels.

    Manages concurrent delivery to all configured channels with
    circuit breaker protection for failing channels.
    """

    def __init__(
        self,
        channels: list[AlertChannel],
        *,
        failure_threshold: int = 5,
        recovery_timeout_seconds: int = 60,
        half_open_max_attempts: int = 3,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            channels: List of alert channels to dispatch to.
            failure_threshold: Consecutive failures before opening circuit.
            recovery_timeout_seconds: Time to wait before half-opening circuit.
            half_open_max_attempts: Number of test attempts in half-open state.
        """
        self.channels = channels
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self.half_open_max_attempts = half_open_max_attempts

        self._circuit_state: dict[str, CircuitBreakerState] = {
            ch.name: CircuitBreakerState() for ch in channels
        }

    def _should_attempt(self, channel_name: str) -> bool:
        """Check if we should attempt delivery to this channel."""
        state = self._circuit_state[channel_name]

        if not state.is_open:
            return True

        if state.last_failure_time:
            elapsed = (datetime.now(UTC) - state.last_failure_time).total_seconds()
            if (
                elapsed >= self.recovery_timeout_seconds
                and state.half_open_attempts < self.half_open_max_attempts
            ):
                logger.info(
                    "Circuit half-open for %s, attempt %d",
                    channel_name,
                    state.half_open_attempts + 1,
                )
                return True

        return False

    def _record_success(self, channel_name: str) -> None:
        """Record a successful delivery."""
        self._circuit_state[channel_name] = CircuitBreakerState()
        logger.debug("Circuit closed for %s", channel_name)

    def _record_failure(self, channel_name: str) -> None:
        """Record a failed delivery."""
        state = self._circuit_state[channel_name]
        state.failure_count += 1
        state.last_failure_time = datetime.now(UTC)

        if state.is_open:
            state.half_open_attempts += 1
        elif state.failure_count >= self.failure_threshold:
            state.is_open = True
            logger.warning(
                "Circuit opened for %s after %d failures",
                channel_name,
                state.failure_count,
            )

    async def _send_to_channel(self, channel: AlertChannel, alert: Alert) -> tuple[str, bool]:
        """Send alert to a single channel with circuit breaker."""
        channel_name = channel.name

        if not self._should_attempt(channel_name):
            logger.debug("Skipping %s - circuit open", channel_name)
            return (channel_name, False)

        try:
            success = await channel.send(alert)
        except Exception as e:
            logger.error("Error sending to %s: %s", channel_name, e)
            self._record_failure(channel_name)
            return (channel_name, False)

        if success:
            self._record_success(channel_name)
        else:
            self._record_failure(channel_name)
        return (channel_name, success)

    async def dispatch(self, alert: Alert) -> DispatchResult:
        """Dispatch alert to all channels concurrently.

        Args:
            alert: Alert to send.

        Returns:
            DispatchResult with per-channel status.
        """
        if not self.channels:
            logger.warning("No channels configured for dispatch")
            return DispatchResult(success_count=0, failure_count=0)

        tasks = [self._send_to_channel(ch, alert) for ch in self.channels]
        results = await asyncio.gather(*tasks)

        channel_results = dict(results)
        success_count = sum(1 for success in channel_results.values() if success)
        failure_count = len(channel_results) - success_count

        logger.info("Dispatch complete: %d/%d succeeded", success_count, len(channel_results))
        return DispatchResult(
            success_count=success_count,
            failure_count=failure_count,
            channel_results=channel_results,
        )

    def get_circuit_status(self) -> dict[str, dict[str, object]]:
        """Get current circuit breaker status for all channels."""
        return {
            name: {
                "is_open": state.is_open,
                "failure_count": state.failure_count,
                "half_open_attempts": state.half_open_attempts,
                "last_failure": (
                    state.last_failure_time.isoformat() if state.last_failure_time else None
                ),
            }
            for name, state in self._circuit_state.items()
        }

    def reset_circuit(self, channel_name: str) -> bool:
        """Manually reset circuit breaker for a channel.

        Args:
            channel_name: Name of channel to reset.

        Returns:
            True if channel was found and reset.
        """
        if channel_name in self._circuit_state:
            self._circuit_state[channel_name] = CircuitBreakerState()
            logger.info("Circuit reset for %s", channel_name)
            return True
        return False
