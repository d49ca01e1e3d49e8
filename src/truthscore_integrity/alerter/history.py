"""Alert history tracking and deduplication.

An alert is a duplicate when an alert of the same type already named
one of its wallets within the dedup window. Keys live in Redis with a
TTL equal to the window, so expiry needs no cleanup job.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from truthscore_integrity.detector.models import Alert, AlertType

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_WINDOW_HOURS = 24


def _dedup_key(alert_type: AlertType, wallet: str) -> str:
    """Generate deduplication key for an alert type and wallet."""
    return f"{alert_type.value}:{wallet.lower()}"


class AlertHistory:
    """Tracks recorded alerts and provides deduplication.

    Uses Redis for storage with configurable dedup window.
    """

    # Redis key prefixes
    KEY_PREFIX_DEDUP = "gaming_alert:dedup:"
    KEY_INDEX_TIME = "gaming_alert:index:time"
    KEY_INDEX_WALLET = "gaming_alert:index:wallet:"

    def __init__(
        self,
        redis: Any,
        *,
        dedup_window_hours: int = DEFAULT_DEDUP_WINDOW_HOURS,
        retention_days: int = 30,
    ) -> None:
        """Initialize alert history.

        Args:
            redis: Redis client (async).
            dedup_window_hours: Hours to suppress repeat alerts (default 24).
            retention_days: Days to keep the time and wallet indexes.
        """
        self.redis = redis
        self.dedup_window_hours = dedup_window_hours
        self.retention_days = retention_days
        self._dedup_ttl = dedup_window_hours * 3600
        self._retention_ttl = retention_days * 86400

    def _redis_keys(self, alert: Alert) -> list[str]:
        return [
            f"{self.KEY_PREFIX_DEDUP}{_dedup_key(alert.type, wallet)}"
            for wallet in sorted(alert.wallets)
        ]

    async def is_duplicate(self, alert: Alert) -> bool:
        """Check if an equivalent alert was recorded within the window.

        Args:
            alert: Alert to check.

        Returns:
            True if any of its wallets already has an alert of this type.
        """
        keys = self._redis_keys(alert)
        if not keys:
            return False

        existing = await self.redis.exists(*keys)
        if existing:
            logger.debug(
                "Duplicate %s alert for %d wallet(s)", alert.type.value, len(alert.wallets)
            )
            return True
        return False

    async def record(self, alert: Alert) -> None:
        """Record an alert so repeats within the window are suppressed.

        Args:
            alert: The alert that was accepted.
        """
        timestamp_score = alert.created_at.timestamp()

        async with self.redis.pipeline() as pipe:
            for key in self._redis_keys(alert):
                pipe.set(key, alert.id, ex=self._dedup_ttl)

            pipe.zadd(self.KEY_INDEX_TIME, {alert.id: timestamp_score})
            for wallet in sorted(alert.wallets):
                wallet_index_key = f"{self.KEY_INDEX_WALLET}{wallet.lower()}"
                pipe.zadd(wallet_index_key, {alert.id: timestamp_score})
                pipe.expire(wallet_index_key, self._retention_ttl)

            await pipe.execute()

        logger.debug("Recorded %s alert %s in history", alert.type.value, alert.id)

    async def get_recent_count(
        self,
        hours: int = 24,
        wallet: str | None = None,
    ) -> int:
        """Get count of alerts in recent hours.

        Args:
            hours: Number of hours to look back.
            wallet: Optional wallet address filter.

        Returns:
            Number of alerts in time period.
        """
        end = datetime.now(UTC)
        start = end - timedelta(hours=hours)

        index_key = (
            f"{self.KEY_INDEX_WALLET}{wallet.lower()}" if wallet else self.KEY_INDEX_TIME
        )

        count: int = await self.redis.zcount(
            index_key,
            start.timestamp(),
            end.timestamp(),
        )
        return count

    async def cleanup_old_alerts(self) -> int:
        """Remove time-index entries older than the retention period.

        Returns:
            Number of entries removed.
        """
        cutoff = datetime.now(UTC) - timedelta(days=self.retention_days)

        removed: int = await self.redis.zremrangebyscore(
            self.KEY_INDEX_TIME,
            "-inf",
            cutoff.timestamp(),
        )

        # Dedup keys and wallet indexes expire via TTL
        logger.info("Cleaned up %d old alert references", removed)
        return removed
