"""Tests for the TruthScore calculator."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from truthscore_integrity.config import ScoringSettings
from truthscore_integrity.scoring.calculator import (
    ScoreCalculator,
    returns_from_outcomes,
    wilson_lower_bound,
    wilson_upper_bound,
)
from truthscore_integrity.scoring.models import Tier, TraderAggregate

NOW = datetime(2024, 6, 1, tzinfo=UTC)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def calculator() -> ScoreCalculator:
    """Create a calculator with default settings."""
    return ScoreCalculator()


@pytest.fixture
def veteran() -> TraderAggregate:
    """650 wins from 1000 bets with 40 tokens of volume, active for months."""
    return TraderAggregate(
        address="0xveteran00000000000000000000000000000001",
        total_bets=1000,
        wins=650,
        losses=350,
        total_volume=Decimal("40000000000000000000"),
        first_bet_at=NOW - timedelta(days=90),
        last_bet_at=NOW,
    )


@pytest.fixture
def lucky_newcomer() -> TraderAggregate:
    """Three wins from three bets."""
    return TraderAggregate(
        address="0xlucky000000000000000000000000000000001",
        total_bets=3,
        wins=3,
        losses=0,
        first_bet_at=NOW - timedelta(days=1),
    )


# ============================================================================
# Wilson Bound Tests
# ============================================================================


class TestWilsonBounds:
    """Tests for the Wilson score interval."""

    def test_lower_bound_large_sample(self) -> None:
        """650/1000 has a lower bound just under 0.62."""
        assert wilson_lower_bound(650, 1000) == pytest.approx(0.6199, abs=1e-3)

    def test_lower_bound_small_sample(self) -> None:
        """3/3 has a lower bound well below 0.5."""
        assert wilson_lower_bound(3, 3) == pytest.approx(0.4385, abs=1e-3)

    def test_degenerate_inputs(self) -> None:
        """No bets or impossible win counts return 0."""
        assert wilson_lower_bound(0, 0) == 0.0
        assert wilson_lower_bound(5, 3) == 0.0
        assert wilson_lower_bound(-1, 3) == 0.0
        assert wilson_upper_bound(0, 0) == 0.0

    def test_interval_contains_raw_rate(self) -> None:
        """The interval brackets the observed win rate."""
        lower = wilson_lower_bound(30, 50)
        upper = wilson_upper_bound(30, 50)
        assert 0.0 <= lower < 0.6 < upper <= 1.0

    def test_larger_sample_tightens_bound(self) -> None:
        """Same win rate, more bets, higher lower bound."""
        assert wilson_lower_bound(600, 1000) > wilson_lower_bound(60, 100)

    @pytest.mark.parametrize("total", [10, 50, 200, 1000])
    def test_lower_bound_non_decreasing_in_wins(self, total: int) -> None:
        """At a fixed bet count, more wins never lower the bound."""
        bounds = [wilson_lower_bound(wins, total) for wins in range(total + 1)]
        assert all(a <= b for a, b in zip(bounds, bounds[1:]))

    @pytest.mark.parametrize("win_rate", [(1, 3), (1, 2), (3, 5), (4, 5), (1, 1)])
    def test_lower_bound_non_decreasing_in_sample(self, win_rate: tuple[int, int]) -> None:
        """At a fixed win rate, more bets never lower the bound."""
        wins, total = win_rate
        bounds = [wilson_lower_bound(wins * k, total * k) for k in range(1, 400)]
        assert all(a <= b for a, b in zip(bounds, bounds[1:]))


# ============================================================================
# Component Tests
# ============================================================================


class TestComponents:
    """Tests for individual score components."""

    def test_skill_zero_at_coin_flip(self, calculator: ScoreCalculator) -> None:
        """A 50% win rate proves no edge."""
        assert calculator.skill_component(500, 1000) == 0

    def test_skill_capped(self, calculator: ScoreCalculator) -> None:
        """A perfect record over many bets stays within 500."""
        assert calculator.skill_component(100_000, 100_000) <= 500

    @pytest.mark.parametrize("total", [10, 50, 200, 1000])
    def test_skill_non_decreasing_in_wins(self, calculator: ScoreCalculator, total: int) -> None:
        """At a fixed bet count, more wins never lower skill."""
        skills = [calculator.skill_component(wins, total) for wins in range(total + 1)]
        assert all(a <= b for a, b in zip(skills, skills[1:]))
        assert skills[0] == 0

    @pytest.mark.parametrize("win_rate", [(1, 2), (3, 5), (7, 10), (1, 1)])
    def test_skill_non_decreasing_in_sample(
        self, calculator: ScoreCalculator, win_rate: tuple[int, int]
    ) -> None:
        """At a fixed win rate, more bets never lower skill."""
        wins, total = win_rate
        skills = [calculator.skill_component(wins * k, total * k) for k in range(1, 400)]
        assert all(a <= b for a, b in zip(skills, skills[1:]))

    def test_activity_zero_and_one_win(self, calculator: ScoreCalculator) -> None:
        """Zero and one win both earn nothing."""
        assert calculator.activity_component(0) == 0
        assert calculator.activity_component(1) == 0

    def test_activity_capped(self, calculator: ScoreCalculator) -> None:
        """Activity saturates at 500."""
        assert calculator.activity_component(10**9) == 500

    def test_volume_in_tokens(self, calculator: ScoreCalculator) -> None:
        """Volume is scored on whole tokens, not wei."""
        assert calculator.volume_component(Decimal("100000000000000000000")) == 200
        assert calculator.volume_component(Decimal("10000000000000000000")) == 100

    def test_volume_below_one_token(self, calculator: ScoreCalculator) -> None:
        """Dust and negative volume earn nothing."""
        assert calculator.volume_component(Decimal("1000")) == 0
        assert calculator.volume_component(Decimal("-5")) == 0

    def test_volume_nan(self, calculator: ScoreCalculator) -> None:
        """NaN volume earns nothing."""
        assert calculator.volume_component(Decimal("NaN")) == 0

    def test_consistency_requires_history(self, calculator: ScoreCalculator) -> None:
        """Fewer than ten periods earn no bonus."""
        assert calculator.consistency_bonus(None) == 0
        assert calculator.consistency_bonus([1.0] * 9) == 0

    def test_consistency_steady_gains(self, calculator: ScoreCalculator) -> None:
        """Constant positive returns earn the full bonus."""
        assert calculator.consistency_bonus([1.0] * 10) == 100

    def test_consistency_break_even(self, calculator: ScoreCalculator) -> None:
        """Alternating wins and losses earn nothing."""
        returns = returns_from_outcomes([True, False] * 5)
        assert calculator.consistency_bonus(returns) == 0

    def test_consistency_ignores_non_finite(self, calculator: ScoreCalculator) -> None:
        """Non-finite returns are dropped before the minimum is checked."""
        assert calculator.consistency_bonus([1.0] * 9 + [float("nan")]) == 0


# ============================================================================
# Score Tests
# ============================================================================


class TestComputeScore:
    """Tests for full score computation."""

    def test_veteran_score(
        self, calculator: ScoreCalculator, veteran: TraderAggregate
    ) -> None:
        """650/1000 with 40 tokens scores 745, Platinum."""
        score = calculator.compute_score(veteran)

        assert score.skill_score == 119
        assert score.activity_score == 466
        assert score.volume_bonus == 160
        assert score.consistency_bonus == 0
        assert score.total == 745
        assert score.tier is Tier.PLATINUM
        assert score.sample_size == 1000
        assert score.raw_win_rate == pytest.approx(0.65)

    def test_small_sample_scores_low(
        self,
        calculator: ScoreCalculator,
        veteran: TraderAggregate,
        lucky_newcomer: TraderAggregate,
    ) -> None:
        """3/3 scores far below 650/1000 despite the higher win rate."""
        lucky = calculator.compute_score(lucky_newcomer)

        assert lucky.skill_score == 0
        assert lucky.activity_score == 79
        assert lucky.total == 79
        assert lucky.tier is Tier.BRONZE
        assert lucky.total < calculator.compute_score(veteran).total

    def test_empty_aggregate(self, calculator: ScoreCalculator) -> None:
        """A wallet with no bets scores zero."""
        score = calculator.compute_score(TraderAggregate(address="0xempty"))

        assert score.total == 0
        assert score.tier is Tier.BRONZE
        assert score.raw_win_rate == 0.0

    def test_malformed_aggregate_never_raises(self, calculator: ScoreCalculator) -> None:
        """Impossible counters resolve to floor values."""
        aggregate = TraderAggregate(
            address="0xbad",
            total_bets=-4,
            wins=10,
            losses=-14,
            total_volume=Decimal("-1"),
        )
        score = calculator.compute_score(aggregate)

        assert score.total == 0
        assert score.sample_size == 0

    def test_total_never_exceeds_cap(self, calculator: ScoreCalculator) -> None:
        """Component sum is capped at 1300."""
        aggregate = TraderAggregate(
            address="0xwhale",
            total_bets=10**7,
            wins=10**7,
            total_volume=Decimal("1e40"),
        )
        score = calculator.compute_score(aggregate, returns=[1.0] * 20)

        assert score.total <= 1300
        assert score.tier is Tier.DIAMOND

    def test_from_settings(self) -> None:
        """Calculator picks up settings values."""
        settings = ScoringSettings(SCORING_WILSON_Z=2.58, SCORING_MIN_BETS_FOR_LEADERBOARD=20)
        calculator = ScoreCalculator.from_settings(settings)

        assert calculator.wilson_z == 2.58
        assert calculator.min_bets_for_leaderboard == 20


class TestTier:
    """Tests for tier thresholds."""

    @pytest.mark.parametrize(
        ("total", "tier"),
        [
            (0, Tier.BRONZE),
            (199, Tier.BRONZE),
            (200, Tier.SILVER),
            (399, Tier.SILVER),
            (400, Tier.GOLD),
            (650, Tier.PLATINUM),
            (899, Tier.PLATINUM),
            (900, Tier.DIAMOND),
            (1300, Tier.DIAMOND),
        ],
    )
    def test_for_score(self, total: int, tier: Tier) -> None:
        """Each threshold maps to its tier."""
        assert Tier.for_score(total) is tier


# ============================================================================
# Display Gating Tests
# ============================================================================


class TestDisplayScore:
    """Tests for leaderboard gating."""

    def test_mature_full_weight(
        self, calculator: ScoreCalculator, veteran: TraderAggregate
    ) -> None:
        """A mature high-volume wallet is shown at its full total."""
        score = calculator.compute_score(veteran)
        displayed = calculator.display_score(score, veteran, now=NOW)

        assert displayed.eligible is True
        assert displayed.sample_multiplier == 1.0
        assert displayed.maturity_capped is False
        assert displayed.displayed_total == 745
        assert displayed.displayed_tier is Tier.PLATINUM

    def test_immature_account_capped(
        self, calculator: ScoreCalculator, veteran: TraderAggregate
    ) -> None:
        """Accounts younger than 14 days show half their total."""
        young = TraderAggregate(
            address=veteran.address,
            total_bets=veteran.total_bets,
            wins=veteran.wins,
            losses=veteran.losses,
            total_volume=veteran.total_volume,
            first_bet_at=NOW - timedelta(days=3),
        )
        score = calculator.compute_score(young)
        displayed = calculator.display_score(score, young, now=NOW)

        assert displayed.maturity_capped is True
        assert displayed.displayed_total == 372
        assert displayed.displayed_tier is Tier.SILVER
        # The underlying score is untouched
        assert displayed.score.total == 745

    def test_below_leaderboard_minimum(
        self, calculator: ScoreCalculator, lucky_newcomer: TraderAggregate
    ) -> None:
        """Wallets under ten bets are excluded from rankings."""
        score = calculator.compute_score(lucky_newcomer)
        displayed = calculator.display_score(score, lucky_newcomer, now=NOW)

        assert displayed.eligible is False
        assert displayed.displayed_total == 0
        assert displayed.reason is not None
        assert "10" in displayed.reason

    def test_partial_weight(self, calculator: ScoreCalculator) -> None:
        """Between 10 and 50 bets activity and volume scale linearly."""
        assert calculator.sample_multiplier(9) == 0.0
        assert calculator.sample_multiplier(10) == pytest.approx(0.2)
        assert calculator.sample_multiplier(25) == pytest.approx(0.5)
        assert calculator.sample_multiplier(50) == 1.0
        assert calculator.sample_multiplier(500) == 1.0

    def test_unknown_first_bet_is_immature(self, calculator: ScoreCalculator) -> None:
        """A missing first-bet time counts as immature."""
        assert calculator.is_mature(None, NOW) is False
        assert calculator.is_mature(NOW - timedelta(days=14), NOW) is True


class TestBreakdown:
    """Tests for plain-language breakdowns."""

    def test_veteran_breakdown(
        self, calculator: ScoreCalculator, veteran: TraderAggregate
    ) -> None:
        """A strong large-sample record reads as elite with high confidence."""
        breakdown = calculator.breakdown(calculator.compute_score(veteran))

        assert breakdown.skill.startswith("Elite")
        assert breakdown.confidence.startswith("Very high")
        assert "Platinum" in breakdown.explanation

    def test_newcomer_breakdown(
        self, calculator: ScoreCalculator, lucky_newcomer: TraderAggregate
    ) -> None:
        """A tiny sample proves nothing."""
        breakdown = calculator.breakdown(calculator.compute_score(lucky_newcomer))

        assert breakdown.skill.startswith("No proven edge")
        assert breakdown.confidence.startswith("Very low")
