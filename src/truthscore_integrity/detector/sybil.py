"""Sybil cluster detection.

Several wallets controlled by one actor tend to fire near-identical bets:
same side, same stake, within seconds of each other. Bets are reduced to
a coarse bucket key and any bucket shared by enough distinct wallets is
reported as a cluster.

Time buckets are fixed windows aligned to the Unix epoch, not sliding
windows. Bets a second or two apart that straddle a bucket boundary (for
example at 4 s, 5 s and 6 s with 5 s buckets) land in different buckets
and are not clustered together.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, NamedTuple

from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertType,
    RecommendedAction,
)
from truthscore_integrity.detector.statistics import unique_in_order
from truthscore_integrity.ingestor.models import Bet, BetSide, usable_bets

if TYPE_CHECKING:
    from truthscore_integrity.config import DetectorSettings

logger = logging.getLogger(__name__)

DEFAULT_MIN_WALLETS = 3
DEFAULT_TIME_BUCKET_SECONDS = 5
# 0.1 BNB in wei
DEFAULT_AMOUNT_BUCKET = Decimal("100000000000000000")


class SybilBucketKey(NamedTuple):
    """Coarse fingerprint of a bet used to group look-alike bets."""

    side: BetSide
    amount_bucket: int
    time_bucket: int


def bucket_key(
    bet: Bet,
    *,
    amount_bucket: Decimal = DEFAULT_AMOUNT_BUCKET,
    time_bucket_seconds: int = DEFAULT_TIME_BUCKET_SECONDS,
) -> SybilBucketKey | None:
    """Derive the bucket a bet falls into.

    Args:
        bet: Bet to fingerprint.
        amount_bucket: Width of an amount bin in base units.
        time_bucket_seconds: Width of a time bin in seconds.

    Returns:
        The bucket key, or None for bets that cannot be bucketed
        (unparseable, negative or non-finite amounts).
    """
    amount = bet.amount
    if not isinstance(amount, Decimal):
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            return None
    if not amount.is_finite() or amount < 0:
        return None
    if amount_bucket <= 0 or time_bucket_seconds <= 0:
        return None

    return SybilBucketKey(
        side=bet.side,
        amount_bucket=int(amount // amount_bucket),
        time_bucket=int(bet.timestamp.timestamp() // time_bucket_seconds),
    )


def group_by_bucket(
    bets: Iterable[Bet] | None,
    *,
    amount_bucket: Decimal = DEFAULT_AMOUNT_BUCKET,
    time_bucket_seconds: int = DEFAULT_TIME_BUCKET_SECONDS,
) -> dict[SybilBucketKey, list[Bet]]:
    """Group bets into buckets, preserving first-seen bucket order."""
    groups: dict[SybilBucketKey, list[Bet]] = {}
    for bet in usable_bets(bets):
        key = bucket_key(
            bet,
            amount_bucket=amount_bucket,
            time_bucket_seconds=time_bucket_seconds,
        )
        if key is not None:
            groups.setdefault(key, []).append(bet)
    return groups


class SybilClusterDetector:
    """Detects groups of wallets placing look-alike bets.

    Intended to run on a batch of bets for one market round, though
    any batch works since the time bucket already separates rounds.
    """

    def __init__(
        self,
        *,
        min_wallets: int = DEFAULT_MIN_WALLETS,
        time_bucket_seconds: int = DEFAULT_TIME_BUCKET_SECONDS,
        amount_bucket: Decimal = DEFAULT_AMOUNT_BUCKET,
    ) -> None:
        """Initialize the detector.

        Args:
            min_wallets: Distinct wallets needed in one bucket (default 3).
            time_bucket_seconds: Time bin width in seconds (default 5).
            amount_bucket: Amount bin width in base units (default 0.1 token).
        """
        self.min_wallets = min_wallets
        self.time_bucket_seconds = time_bucket_seconds
        self.amount_bucket = amount_bucket

    @classmethod
    def from_settings(cls, settings: DetectorSettings) -> SybilClusterDetector:
        """Build a detector from configuration."""
        return cls(
            min_wallets=settings.sybil_min_wallets,
            time_bucket_seconds=settings.sybil_time_bucket_seconds,
            amount_bucket=settings.sybil_amount_bucket,
        )

    def detect(self, bets: Iterable[Bet] | None) -> Alert | None:
        """Return an alert for the first qualifying cluster, or None."""
        alerts = self._scan(bets, first_only=True)
        return alerts[0] if alerts else None

    def detect_all(self, bets: Iterable[Bet] | None) -> list[Alert]:
        """Return one alert per qualifying cluster."""
        return self._scan(bets, first_only=False)

    def _scan(self, bets: Iterable[Bet] | None, *, first_only: bool) -> list[Alert]:
        groups = group_by_bucket(
            bets,
            amount_bucket=self.amount_bucket,
            time_bucket_seconds=self.time_bucket_seconds,
        )
        logger.debug("Sybil check: buckets=%d", len(groups))

        alerts: list[Alert] = []
        for key, members in groups.items():
            wallets = unique_in_order(bet.trader.lower() for bet in members)
            if len(wallets) < self.min_wallets:
                continue

            alerts.append(self._build_alert(key, members, wallets))
            if first_only:
                break
        return alerts

    def _build_alert(
        self,
        key: SybilBucketKey,
        members: list[Bet],
        wallets: list[str],
    ) -> Alert:
        epochs = unique_in_order(bet.epoch for bet in members)
        logger.info(
            "Sybil cluster detected: wallets=%d side=%s epochs=%s",
            len(wallets),
            key.side.value,
            epochs,
        )
        return Alert(
            type=AlertType.SYBIL_CLUSTER,
            severity=AlertSeverity.WARNING,
            wallets=frozenset(wallets),
            evidence=AlertEvidence(
                description=(
                    f"{len(wallets)} wallets placed similar bets within "
                    f"{self.time_bucket_seconds} seconds"
                ),
                data_points={
                    "cluster_size": len(wallets),
                    "direction": key.side.value,
                    "amount_bucket": key.amount_bucket,
                    "time_bucket": key.time_bucket,
                    "platforms": unique_in_order(bet.platform for bet in members),
                },
                epochs=tuple(epochs),
            ),
            recommended_action=RecommendedAction.INVESTIGATE,
        )
