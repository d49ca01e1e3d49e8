"""Composite risk scorer combining detector alerts.

This module provides the RiskScorer class that turns the alerts raised
against a wallet into per-pattern scores and one weighted 0-100 risk
score.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from truthscore_integrity.detector.models import Alert, AlertType, PatternScores

logger = logging.getLogger(__name__)

MAX_RISK_SCORE = 100.0

# Default weights for each pattern
DEFAULT_WEIGHTS = {
    "wash_trading": 0.4,
    "sybil": 0.3,
    "anomaly": 0.2,
    "collusion": 0.1,
}

# Score a pattern contributes when at least one alert of its type is present.
# A win-rate anomaly can be genuine skill, so it only counts half.
DEFAULT_PATTERN_SCORES = {
    "wash_trading": 100.0,
    "sybil": 100.0,
    "anomaly": 50.0,
    "collusion": 100.0,
}

_PATTERN_BY_TYPE = {
    AlertType.WASH_TRADING: "wash_trading",
    AlertType.SYBIL_CLUSTER: "sybil",
    AlertType.STATISTICAL_ANOMALY: "anomaly",
    AlertType.COLLUSION: "collusion",
}


class RiskScorer:
    """Weighted risk scorer over anti-gaming alerts.

    Scoring Formula:
        pattern[p] = PATTERN_SCORES[p] if any alert of type p else 0

        risk = min(100, sum(pattern[p] * weight[p] for p in patterns))

    With the default weights a wallet caught wash trading alone scores 40,
    which is the high-risk line.

    Example:
        ```python
        scorer = RiskScorer()
        patterns = scorer.pattern_scores(alerts)
        risk = scorer.risk_score(patterns)
        ```
    """

    def __init__(
        self,
        *,
        weights: dict[str, float] | None = None,
        pattern_scores: dict[str, float] | None = None,
    ) -> None:
        """Initialize the risk scorer.

        Args:
            weights: Custom weights per pattern. Defaults to DEFAULT_WEIGHTS.
            pattern_scores: Custom per-pattern scores. Defaults to
                DEFAULT_PATTERN_SCORES.
        """
        self._weights = weights or DEFAULT_WEIGHTS.copy()
        self._pattern_scores = pattern_scores or DEFAULT_PATTERN_SCORES.copy()

    def pattern_scores(self, alerts: Iterable[Alert] | None) -> PatternScores:
        """Score each pattern from the alerts raised.

        Args:
            alerts: Alerts implicating the wallet.

        Returns:
            PatternScores with one value per pattern.
        """
        present = {_PATTERN_BY_TYPE[alert.type] for alert in alerts or ()}
        values = {
            name: (self._pattern_scores.get(name, 0.0) if name in present else 0.0)
            for name in DEFAULT_PATTERN_SCORES
        }
        return PatternScores(**values)

    def risk_score(self, patterns: PatternScores) -> float:
        """Combine pattern scores into a 0-100 risk score."""
        score = sum(
            value * self._weights.get(name, 0.0)
            for name, value in patterns.to_dict().items()
        )
        return min(MAX_RISK_SCORE, max(0.0, score))

    def score(self, alerts: Iterable[Alert] | None) -> tuple[PatternScores, float]:
        """Return pattern scores and the combined risk score."""
        patterns = self.pattern_scores(list(alerts or ()))
        return patterns, self.risk_score(patterns)

    def get_weights(self) -> dict[str, float]:
        """Get current pattern weights.

        Returns:
            Copy of the weights dictionary.
        """
        return self._weights.copy()

    def set_weights(self, weights: dict[str, float]) -> None:
        """Update pattern weights.

        Args:
            weights: New weights dictionary.
        """
        self._weights = weights.copy()
        logger.info("Updated risk scorer weights: %s", self._weights)
