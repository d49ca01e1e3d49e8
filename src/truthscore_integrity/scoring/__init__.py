"""TruthScore layer - gaming-resistant reputation scoring.

Import ``ScoreService`` from ``truthscore_integrity.scoring.service``.
"""

from truthscore_integrity.scoring.calculator import (
    ScoreCalculator,
    returns_from_outcomes,
    wilson_lower_bound,
    wilson_upper_bound,
)
from truthscore_integrity.scoring.models import (
    MAX_TOTAL_SCORE,
    DisplayedScore,
    ScoreBreakdown,
    Tier,
    TraderAggregate,
    TruthScore,
)

__all__ = [
    "MAX_TOTAL_SCORE",
    "DisplayedScore",
    "ScoreBreakdown",
    "ScoreCalculator",
    "Tier",
    "TraderAggregate",
    "TruthScore",
    "returns_from_outcomes",
    "wilson_lower_bound",
    "wilson_upper_bound",
]
