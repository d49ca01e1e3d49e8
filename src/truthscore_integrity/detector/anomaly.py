"""Statistical anomaly detection on win rates.

Under a fair binary market a trader's win count is Binomial(n, 0.5). A
win rate many standard deviations above that baseline is unlikely to be
skill alone and is surfaced for review.
"""

from __future__ import annotations

import logging
import math
from numbers import Integral
from typing import TYPE_CHECKING

from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertType,
    RecommendedAction,
)
from truthscore_integrity.detector.statistics import (
    BASELINE_WIN_RATE,
    binomial_z_score,
    two_sided_probability,
    upper_tail_probability,
)

if TYPE_CHECKING:
    from truthscore_integrity.config import DetectorSettings

logger = logging.getLogger(__name__)

# One-sided 99.9% critical value
DEFAULT_Z_THRESHOLD = 3.29
DEFAULT_MIN_SAMPLE = 50


class StatisticalAnomalyDetector:
    """Flags win rates that are improbable under a fair coin.

    By default only unusually high win rates trigger. With
    ``two_sided=True`` an equally extreme low win rate triggers too.
    """

    def __init__(
        self,
        *,
        z_threshold: float = DEFAULT_Z_THRESHOLD,
        min_sample: int = DEFAULT_MIN_SAMPLE,
        two_sided: bool = False,
    ) -> None:
        """Initialize the detector.

        Args:
            z_threshold: Z-score that must be exceeded (default 3.29).
            min_sample: Minimum resolved bets before testing (default 50).
            two_sided: Also flag improbably low win rates.
        """
        self.z_threshold = z_threshold
        self.min_sample = min_sample
        self.two_sided = two_sided

    @classmethod
    def from_settings(cls, settings: DetectorSettings) -> StatisticalAnomalyDetector:
        """Build a detector from configuration."""
        return cls(
            z_threshold=settings.anomaly_z_threshold,
            min_sample=settings.anomaly_min_sample,
            two_sided=settings.anomaly_two_sided,
        )

    def z_score(self, wins: int, total_bets: int) -> float | None:
        """Return the z-score, or None when the sample is unusable."""
        if not isinstance(wins, Integral) or not isinstance(total_bets, Integral):
            return None
        if total_bets < self.min_sample or wins < 0 or wins > total_bets:
            return None
        z = binomial_z_score(int(wins), int(total_bets))
        return None if math.isnan(z) else z

    def detect(self, wallet: str, wins: int, total_bets: int) -> Alert | None:
        """Test a wallet's record against the fair-coin baseline.

        Args:
            wallet: Wallet address.
            wins: Resolved winning bets.
            total_bets: Resolved bets in total.

        Returns:
            An INFO STATISTICAL_ANOMALY alert, or None.
        """
        if not wallet:
            return None

        z = self.z_score(wins, total_bets)
        if z is None:
            logger.debug(
                "Anomaly check skipped: wallet=%s total_bets=%s",
                wallet[:10],
                total_bets,
            )
            return None

        triggered = abs(z) > self.z_threshold if self.two_sided else z > self.z_threshold
        if not triggered:
            return None

        wins, total_bets = int(wins), int(total_bets)
        win_rate = wins / total_bets
        probability = two_sided_probability(z) if self.two_sided else upper_tail_probability(z)
        logger.info(
            "Statistical anomaly detected: wallet=%s win_rate=%.3f z=%.2f",
            wallet[:10],
            win_rate,
            z,
        )
        return Alert(
            type=AlertType.STATISTICAL_ANOMALY,
            severity=AlertSeverity.INFO,
            wallets=frozenset({wallet.lower()}),
            evidence=AlertEvidence(
                description=f"Win rate of {win_rate * 100:.1f}% is statistically improbable",
                data_points={
                    "win_rate": win_rate,
                    "z_score": z,
                    "total_bets": total_bets,
                    "baseline": BASELINE_WIN_RATE,
                    "probability_of_random": probability,
                },
            ),
            recommended_action=RecommendedAction.INVESTIGATE,
        )
