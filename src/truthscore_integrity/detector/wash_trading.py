"""Wash trading detection.

A wallet that backs both outcomes of the same round manufactures volume
and activity without taking real risk. Repeating that across several
rounds is treated as deliberate score farming.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertType,
    RecommendedAction,
)
from truthscore_integrity.ingestor.models import Bet, BetSide, usable_bets

if TYPE_CHECKING:
    from truthscore_integrity.config import DetectorSettings

logger = logging.getLogger(__name__)

DEFAULT_EPOCH_THRESHOLD = 3
DEFAULT_EVIDENCE_LIMIT = 10


class WashTradingDetector:
    """Flags wallets that bet both sides of the same epoch repeatedly.

    An epoch is a wash epoch when the wallet placed at least one bull and
    one bear bet in it. Epochs are keyed by (platform, epoch) so equal
    round numbers on different platforms are not conflated.

    Example:
        ```python
        detector = WashTradingDetector()
        alert = detector.detect("0xabc...", bets)
        if alert is not None:
            await sink.submit(alert)
        ```
    """

    def __init__(
        self,
        *,
        epoch_threshold: int = DEFAULT_EPOCH_THRESHOLD,
        evidence_limit: int = DEFAULT_EVIDENCE_LIMIT,
    ) -> None:
        """Initialize the detector.

        Args:
            epoch_threshold: Wash epochs needed to raise an alert (default 3).
            evidence_limit: Maximum epochs listed in the evidence (default 10).
        """
        self.epoch_threshold = epoch_threshold
        self.evidence_limit = evidence_limit

    @classmethod
    def from_settings(cls, settings: DetectorSettings) -> WashTradingDetector:
        """Build a detector from configuration."""
        return cls(
            epoch_threshold=settings.wash_epoch_threshold,
            evidence_limit=settings.wash_evidence_limit,
        )

    def wash_epochs(self, wallet: str, bets: Iterable[Bet] | None) -> list[tuple[str, int]]:
        """Return the (platform, epoch) keys where the wallet bet both sides.

        Keys are returned in the order their first bet appears.
        """
        if not wallet:
            return []
        address = wallet.lower()

        sides_by_epoch: dict[tuple[str, int], set[BetSide]] = {}
        for bet in usable_bets(bets):
            if bet.trader.lower() != address:
                continue
            sides_by_epoch.setdefault(bet.market_key, set()).add(bet.side)

        return [key for key, sides in sides_by_epoch.items() if len(sides) == 2]

    def detect(self, wallet: str, bets: Iterable[Bet] | None) -> Alert | None:
        """Check one wallet's bets for wash trading.

        Args:
            wallet: Wallet address to check.
            bets: The wallet's bets (bets from other wallets are ignored).

        Returns:
            A CRITICAL WASH_TRADING alert, or None.
        """
        epochs = self.wash_epochs(wallet, bets)
        logger.debug(
            "Wash trading check: wallet=%s wash_epochs=%d",
            (wallet or "")[:10],
            len(epochs),
        )

        if len(epochs) < self.epoch_threshold:
            return None

        listed = epochs[: self.evidence_limit]
        logger.info(
            "Wash trading detected: wallet=%s wash_epochs=%d",
            wallet[:10],
            len(epochs),
        )
        return Alert(
            type=AlertType.WASH_TRADING,
            severity=AlertSeverity.CRITICAL,
            wallets=frozenset({wallet.lower()}),
            evidence=AlertEvidence(
                description=f"Detected {len(epochs)} epochs with bets on both sides",
                data_points={
                    "wash_epoch_count": len(epochs),
                    "platforms": sorted({platform for platform, _ in listed}),
                },
                epochs=tuple(epoch for _, epoch in listed),
            ),
            recommended_action=RecommendedAction.FLAG,
        )
