"""TruthScore calculation.

Turns a wallet's win/loss aggregate into a gaming-resistant reputation
score. The skill component uses the lower bound of the Wilson score
interval, so a 3-for-3 record scores far below a 650-for-1000 record even
though its raw win rate is higher.

Scoring Formula:
    wilson = (p + z²/2n - z·√(p(1-p)/n + z²/4n²)) / (1 + z²/n)

    skill       = clamp((wilson - 0.5) × 1000, 0, 500)
    activity    = clamp(log10(max(wins, 1)) × 166, 0, 500)
    volume      = clamp(log10(max(volume_tokens, 1)) × 100, 0, 200)
    consistency = clamp(sharpe(returns) × 200, 0, 100)

    total = min(skill + activity + volume + consistency, 1300)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import numpy as np

from truthscore_integrity.ingestor.models import BASE_UNITS_PER_TOKEN
from truthscore_integrity.scoring.models import (
    MAX_TOTAL_SCORE,
    DisplayedScore,
    ScoreBreakdown,
    Tier,
    TraderAggregate,
    TruthScore,
)

if TYPE_CHECKING:
    from truthscore_integrity.config import ScoringSettings

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_WILSON_Z = 1.96
DEFAULT_MIN_BETS_FOR_LEADERBOARD = 10
DEFAULT_MIN_BETS_FOR_FULL_WEIGHT = 50
DEFAULT_MATURITY_DAYS = 14.0
DEFAULT_MIN_CONSISTENCY_PERIODS = 10

# Component caps
SKILL_MAX = 500
ACTIVITY_MAX = 500
VOLUME_MAX = 200
CONSISTENCY_MAX = 100

# Component scale factors
SKILL_SCALE = 1000
ACTIVITY_SCALE = 166
VOLUME_SCALE = 100
CONSISTENCY_SCALE = 200

# Displayed total for accounts younger than the maturity window
IMMATURE_ACCOUNT_CAP = 0.5


def _clamp(value: float, low: float, high: float) -> int:
    """Floor a component into [low, high]; NaN maps to the floor."""
    if math.isnan(value):
        return int(low)
    return int(max(low, min(high, math.floor(value))))


def wilson_lower_bound(wins: int, total: int, z: float = DEFAULT_WILSON_Z) -> float:
    """Lower bound of the Wilson score interval for a win rate.

    Args:
        wins: Number of successful predictions.
        total: Total number of predictions.
        z: Z value for the confidence level (1.96 = 95%).

    Returns:
        Conservative estimate of the true win rate in [0, 1]. Degenerate
        input (no bets, wins outside [0, total]) returns 0.0.
    """
    if total <= 0 or wins < 0 or wins > total:
        return 0.0

    p = wins / total
    z2 = z * z
    denominator = 1 + z2 / total
    center = p + z2 / (2 * total)
    spread = z * math.sqrt((p * (1 - p) + z2 / (4 * total)) / total)
    return max(0.0, (center - spread) / denominator)


def wilson_upper_bound(wins: int, total: int, z: float = DEFAULT_WILSON_Z) -> float:
    """Upper bound of the Wilson score interval for a win rate."""
    if total <= 0 or wins < 0 or wins > total:
        return 0.0

    p = wins / total
    z2 = z * z
    denominator = 1 + z2 / total
    center = p + z2 / (2 * total)
    spread = z * math.sqrt((p * (1 - p) + z2 / (4 * total)) / total)
    return min(1.0, (center + spread) / denominator)


def returns_from_outcomes(outcomes: Sequence[bool]) -> list[float]:
    """Map resolved bet outcomes to +1 (win) / -1 (loss) returns."""
    return [1.0 if won else -1.0 for won in outcomes]


class ScoreCalculator:
    """Computes TruthScores and their leaderboard presentation.

    The calculator is a pure function of its input and holds no mutable
    state, so one instance can score many wallets concurrently.

    Example:
        ```python
        calculator = ScoreCalculator()
        aggregate = TraderAggregate(
            address="0xabc...",
            total_bets=1000,
            wins=650,
            losses=350,
            total_volume=Decimal("40000000000000000000"),  # 40 BNB
        )
        score = calculator.compute_score(aggregate)
        print(score.total, score.tier)  # 745 Tier.PLATINUM
        ```
    """

    def __init__(
        self,
        *,
        wilson_z: float = DEFAULT_WILSON_Z,
        min_bets_for_leaderboard: int = DEFAULT_MIN_BETS_FOR_LEADERBOARD,
        min_bets_for_full_weight: int = DEFAULT_MIN_BETS_FOR_FULL_WEIGHT,
        maturity_days: float = DEFAULT_MATURITY_DAYS,
        min_consistency_periods: int = DEFAULT_MIN_CONSISTENCY_PERIODS,
    ) -> None:
        """Initialize the calculator.

        Args:
            wilson_z: Z value of the Wilson interval (default 1.96).
            min_bets_for_leaderboard: Resolved bets needed for public ranking.
            min_bets_for_full_weight: Resolved bets at which activity and
                volume count fully.
            maturity_days: Account age below which the displayed total is
                capped at 50%.
            min_consistency_periods: Return periods needed for a consistency
                bonus.
        """
        self.wilson_z = wilson_z
        self.min_bets_for_leaderboard = min_bets_for_leaderboard
        self.min_bets_for_full_weight = max(1, min_bets_for_full_weight)
        self.maturity_days = maturity_days
        self.min_consistency_periods = min_consistency_periods

    @classmethod
    def from_settings(cls, settings: ScoringSettings) -> ScoreCalculator:
        """Create a calculator from a ``ScoringSettings`` instance."""
        return cls(
            wilson_z=settings.wilson_z,
            min_bets_for_leaderboard=settings.min_bets_for_leaderboard,
            min_bets_for_full_weight=settings.min_bets_for_full_weight,
            maturity_days=settings.maturity_days,
            min_consistency_periods=settings.min_consistency_periods,
        )

    def compute_score(
        self,
        aggregate: TraderAggregate,
        returns: Sequence[float] | None = None,
    ) -> TruthScore:
        """Compute the TruthScore for a wallet aggregate.

        Never raises: negative counts, wins above the bet count, negative
        volume and NaN ratios all resolve to floor values.

        Args:
            aggregate: The wallet's resolved-bet totals.
            returns: Optional per-period returns for the consistency bonus.

        Returns:
            TruthScore with per-component breakdown and tier.
        """
        total_bets = max(0, int(aggregate.total_bets))
        wins = max(0, min(int(aggregate.wins), total_bets))

        wilson = wilson_lower_bound(wins, total_bets, self.wilson_z)
        skill = self.skill_component(wins, total_bets)
        activity = self.activity_component(wins)
        volume = self.volume_component(aggregate.total_volume)
        consistency = self.consistency_bonus(returns)

        total = min(MAX_TOTAL_SCORE, skill + activity + volume + consistency)

        score = TruthScore(
            address=aggregate.address,
            skill_score=skill,
            activity_score=activity,
            volume_bonus=volume,
            consistency_bonus=consistency,
            total=total,
            tier=Tier.for_score(total),
            wilson_lower=wilson,
            raw_win_rate=wins / total_bets if total_bets else 0.0,
            sample_size=total_bets,
        )

        logger.debug(
            "Scored wallet=%s total=%d tier=%s (skill=%d activity=%d volume=%d consistency=%d)",
            aggregate.address[:10],
            total,
            score.tier.value,
            skill,
            activity,
            volume,
            consistency,
        )
        return score

    def skill_component(self, wins: int, total_bets: int) -> int:
        """Wilson-bounded edge over a coin flip, 0-500."""
        wilson = wilson_lower_bound(wins, total_bets, self.wilson_z)
        return _clamp((wilson - 0.5) * SKILL_SCALE, 0, SKILL_MAX)

    @staticmethod
    def activity_component(wins: int) -> int:
        """Logarithmic credit for winning bets, 0-500."""
        return _clamp(math.log10(max(wins, 1)) * ACTIVITY_SCALE, 0, ACTIVITY_MAX)

    @staticmethod
    def volume_component(volume_base_units: Decimal | int | float) -> int:
        """Logarithmic credit for staked volume in whole tokens, 0-200."""
        try:
            tokens = float(Decimal(str(volume_base_units)) / BASE_UNITS_PER_TOKEN)
        except (ArithmeticError, ValueError):
            return 0
        if math.isnan(tokens) or math.isinf(tokens):
            return 0
        return _clamp(math.log10(max(tokens, 1.0)) * VOLUME_SCALE, 0, VOLUME_MAX)

    def consistency_bonus(self, returns: Sequence[float] | None) -> int:
        """Sharpe-like steadiness bonus from per-period returns, 0-100.

        Fewer than ``min_consistency_periods`` returns earn nothing. A
        zero-variance history earns the full bonus only if it is positive.
        """
        if not returns or len(returns) < self.min_consistency_periods:
            return 0

        values = np.asarray(returns, dtype=float)
        values = values[np.isfinite(values)]
        if values.size < self.min_consistency_periods:
            return 0

        mean = float(values.mean())
        std_dev = float(values.std())
        if std_dev == 0.0:
            return CONSISTENCY_MAX if mean > 0 else 0

        return _clamp(mean / std_dev * CONSISTENCY_SCALE, 0, CONSISTENCY_MAX)

    def sample_multiplier(self, total_bets: int) -> float:
        """Weight applied to activity and volume for public display.

        Zero below the leaderboard minimum, then linear up to full weight.
        """
        if total_bets < self.min_bets_for_leaderboard:
            return 0.0
        return min(1.0, total_bets / self.min_bets_for_full_weight)

    def is_mature(self, first_bet_at: datetime | None, now: datetime | None = None) -> bool:
        """Return True if the account is older than the maturity window.

        Accounts with no known first bet are treated as immature.
        """
        if first_bet_at is None:
            return False
        now = now or datetime.now(UTC)
        age_days = (now - first_bet_at).total_seconds() / 86400
        return age_days >= self.maturity_days

    def display_score(
        self,
        score: TruthScore,
        aggregate: TraderAggregate,
        *,
        now: datetime | None = None,
    ) -> DisplayedScore:
        """Apply eligibility gating to a score for public rankings.

        Gating only changes visibility: wallets below the leaderboard
        minimum are excluded, activity and volume scale linearly until full
        weight, and immature accounts are capped at half their total.

        Args:
            score: The computed TruthScore.
            aggregate: Aggregate the score was computed from.
            now: Reference time for the account-age check.

        Returns:
            DisplayedScore describing what the leaderboard shows.
        """
        total_bets = max(0, aggregate.total_bets)
        if total_bets < self.min_bets_for_leaderboard:
            return DisplayedScore(
                score=score,
                eligible=False,
                sample_multiplier=0.0,
                maturity_capped=False,
                displayed_total=0,
                displayed_tier=Tier.BRONZE,
                reason=(
                    f"Minimum {self.min_bets_for_leaderboard} resolved bets required "
                    f"(have {total_bets})"
                ),
            )

        multiplier = self.sample_multiplier(total_bets)
        weighted = (
            score.skill_score
            + score.consistency_bonus
            + (score.activity_score + score.volume_bonus) * multiplier
        )
        displayed = min(MAX_TOTAL_SCORE, math.floor(weighted))

        capped = not self.is_mature(aggregate.first_bet_at, now)
        if capped:
            displayed = math.floor(displayed * IMMATURE_ACCOUNT_CAP)

        return DisplayedScore(
            score=score,
            eligible=True,
            sample_multiplier=multiplier,
            maturity_capped=capped,
            displayed_total=displayed,
            displayed_tier=Tier.for_score(displayed),
        )

    def breakdown(self, score: TruthScore) -> ScoreBreakdown:
        """Describe a score in plain language."""
        edge = max(0.0, score.wilson_lower - 0.5) * 100
        if edge >= 10:
            skill_level = "Elite"
        elif edge >= 7:
            skill_level = "Excellent"
        elif edge >= 5:
            skill_level = "Strong"
        elif edge >= 3:
            skill_level = "Good"
        elif edge >= 1:
            skill_level = "Slight edge"
        else:
            skill_level = "No proven edge"

        n = score.sample_size
        if n >= 500:
            confidence_level = "Very high"
        elif n >= 200:
            confidence_level = "High"
        elif n >= 100:
            confidence_level = "Moderate"
        elif n >= 30:
            confidence_level = "Low"
        else:
            confidence_level = "Very low"

        return ScoreBreakdown(
            skill=f"{skill_level} ({edge:.1f}% proven edge over a coin flip)",
            confidence=f"{confidence_level} ({n} resolved bets)",
            explanation=(
                f"{skill_level} performer with {confidence_level.lower()} confidence, "
                f"{score.tier.value} tier at {score.total} points."
            ),
        )
