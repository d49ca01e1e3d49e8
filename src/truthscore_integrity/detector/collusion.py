"""Collusion detection from epoch co-participation.

Two independent traders rarely turn up in the same rounds over and over.
Pairs whose participation sets overlap almost completely across many
rounds are reported as possibly coordinated.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from itertools import combinations
from typing import TYPE_CHECKING

from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertType,
    RecommendedAction,
)
from truthscore_integrity.ingestor.models import Bet, usable_bets

if TYPE_CHECKING:
    from truthscore_integrity.config import DetectorSettings

logger = logging.getLogger(__name__)

DEFAULT_MIN_SHARED_EPOCHS = 20
DEFAULT_OVERLAP_THRESHOLD = 0.8


@dataclass(frozen=True)
class CoParticipation:
    """Epoch overlap between two wallets.

    Attributes:
        wallet_a: First wallet (lexicographically smaller).
        wallet_b: Second wallet.
        shared_epochs: Epochs both wallets bet in.
        union_epochs: Epochs either wallet bet in.
    """

    wallet_a: str
    wallet_b: str
    shared_epochs: int
    union_epochs: int

    @property
    def overlap(self) -> float:
        """Jaccard overlap of the two participation sets."""
        if self.union_epochs == 0:
            return 0.0
        return self.shared_epochs / self.union_epochs


def participation(bets: Iterable[Bet] | None) -> dict[str, set[tuple[str, int]]]:
    """Map each wallet to the (platform, epoch) keys it bet in."""
    epochs_by_wallet: dict[str, set[tuple[str, int]]] = {}
    for bet in usable_bets(bets):
        epochs_by_wallet.setdefault(bet.trader.lower(), set()).add(bet.market_key)
    return epochs_by_wallet


def co_participation(
    bets: Iterable[Bet] | None,
    *,
    min_epochs: int = 1,
) -> list[CoParticipation]:
    """Compute the overlap of every wallet pair that shares an epoch.

    Shared counts are accumulated epoch by epoch, so the work grows with
    the number of co-located pairs rather than wallets times epochs.
    Pairs are returned in sorted (wallet_a, wallet_b) order.

    Args:
        bets: Bets to compare.
        min_epochs: Wallets active in fewer epochs than this are skipped.
    """
    epochs_by_wallet = participation(bets)

    wallets_by_epoch: dict[tuple[str, int], list[str]] = {}
    for wallet, keys in epochs_by_wallet.items():
        if len(keys) < min_epochs:
            continue
        for key in keys:
            wallets_by_epoch.setdefault(key, []).append(wallet)

    shared: Counter[tuple[str, str]] = Counter()
    for wallets in wallets_by_epoch.values():
        if len(wallets) > 1:
            shared.update(combinations(sorted(wallets), 2))

    return [
        CoParticipation(
            wallet_a=wallet_a,
            wallet_b=wallet_b,
            shared_epochs=count,
            union_epochs=len(epochs_by_wallet[wallet_a])
            + len(epochs_by_wallet[wallet_b])
            - count,
        )
        for (wallet_a, wallet_b), count in sorted(shared.items())
    ]


class CollusionDetector:
    """Flags wallet pairs that bet in the same epochs far beyond chance.

    A pair qualifies when it shares at least ``min_shared_epochs`` epochs
    and its Jaccard overlap exceeds ``overlap_threshold``. Only the first
    qualifying pair is reported by ``detect``; ``detect_all`` returns one
    alert per qualifying pair.
    """

    def __init__(
        self,
        *,
        min_shared_epochs: int = DEFAULT_MIN_SHARED_EPOCHS,
        overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
    ) -> None:
        """Initialize the detector.

        Args:
            min_shared_epochs: Absolute shared-epoch floor (default 20).
            overlap_threshold: Overlap that must be exceeded (default 0.8).
        """
        self.min_shared_epochs = min_shared_epochs
        self.overlap_threshold = overlap_threshold

    @classmethod
    def from_settings(cls, settings: DetectorSettings) -> CollusionDetector:
        """Build a detector from configuration."""
        return cls(
            min_shared_epochs=settings.collusion_min_shared_epochs,
            overlap_threshold=settings.collusion_overlap_threshold,
        )

    def qualifies(self, pair: CoParticipation) -> bool:
        """Return True if the pair crosses both thresholds."""
        return (
            pair.shared_epochs >= self.min_shared_epochs
            and pair.overlap > self.overlap_threshold
        )

    def detect(self, bets: Iterable[Bet] | None) -> Alert | None:
        """Return an alert for the first qualifying pair, or None."""
        for pair in co_participation(bets, min_epochs=self.min_shared_epochs):
            if self.qualifies(pair):
                return self._build_alert(pair)
        return None

    def detect_all(self, bets: Iterable[Bet] | None) -> list[Alert]:
        """Return one alert per qualifying pair."""
        pairs = co_participation(bets, min_epochs=self.min_shared_epochs)
        return [self._build_alert(p) for p in pairs if self.qualifies(p)]

    def _build_alert(self, pair: CoParticipation) -> Alert:
        logger.info(
            "Collusion detected: wallets=%s,%s shared=%d overlap=%.2f",
            pair.wallet_a[:10],
            pair.wallet_b[:10],
            pair.shared_epochs,
            pair.overlap,
        )
        return Alert(
            type=AlertType.COLLUSION,
            severity=AlertSeverity.WARNING,
            wallets=frozenset({pair.wallet_a, pair.wallet_b}),
            evidence=AlertEvidence(
                description=f"Wallets bet together in {pair.overlap * 100:.0f}% of epochs",
                data_points={
                    "co_occurrence_rate": pair.overlap,
                    "shared_epochs": pair.shared_epochs,
                    "total_epochs": pair.union_epochs,
                },
            ),
            recommended_action=RecommendedAction.INVESTIGATE,
        )
