"""Tests for composite risk scorer."""

from __future__ import annotations

import pytest

from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertType,
    PatternScores,
    RecommendedAction,
)
from truthscore_integrity.detector.scorer import DEFAULT_WEIGHTS, RiskScorer

WALLET = "0xaaaa000000000000000000000000000000000001"


def make_alert(alert_type: AlertType) -> Alert:
    """Create a minimal alert of the given type."""
    return Alert(
        type=alert_type,
        severity=AlertSeverity.WARNING,
        wallets=frozenset({WALLET}),
        evidence=AlertEvidence(description="test"),
        recommended_action=RecommendedAction.INVESTIGATE,
    )


class TestRiskScorer:
    """Tests for RiskScorer."""

    def test_no_alerts(self) -> None:
        """A clean wallet scores zero."""
        patterns, risk = RiskScorer().score([])

        assert patterns == PatternScores()
        assert risk == 0.0

    def test_wash_trading_alone_is_high_risk(self) -> None:
        """Wash trading alone reaches the 40-point line."""
        _, risk = RiskScorer().score([make_alert(AlertType.WASH_TRADING)])
        assert risk == pytest.approx(40.0)

    def test_anomaly_counts_half(self) -> None:
        """A win-rate anomaly contributes half its weight."""
        patterns, risk = RiskScorer().score([make_alert(AlertType.STATISTICAL_ANOMALY)])

        assert patterns.anomaly == 50.0
        assert risk == pytest.approx(10.0)

    def test_all_patterns(self) -> None:
        """Every pattern together scores 90."""
        alerts = [make_alert(t) for t in AlertType]
        patterns, risk = RiskScorer().score(alerts)

        assert patterns == PatternScores(
            wash_trading=100.0, sybil=100.0, anomaly=50.0, collusion=100.0
        )
        assert risk == pytest.approx(90.0)

    def test_repeat_alerts_do_not_stack(self) -> None:
        """Several alerts of one type count once."""
        alerts = [make_alert(AlertType.SYBIL_CLUSTER)] * 3
        _, risk = RiskScorer().score(alerts)
        assert risk == pytest.approx(30.0)

    def test_score_clamped(self) -> None:
        """Oversized weights are clamped to 100."""
        scorer = RiskScorer(weights={name: 1.0 for name in DEFAULT_WEIGHTS})
        _, risk = scorer.score([make_alert(t) for t in AlertType])
        assert risk == 100.0

    def test_none_alerts(self) -> None:
        """None is treated as no alerts."""
        assert RiskScorer().score(None)[1] == 0.0

    def test_set_weights(self) -> None:
        """Weights can be replaced at runtime."""
        scorer = RiskScorer()
        scorer.set_weights({"wash_trading": 0.5})

        assert scorer.get_weights() == {"wash_trading": 0.5}
        assert scorer.score([make_alert(AlertType.SYBIL_CLUSTER)])[1] == 0.0
