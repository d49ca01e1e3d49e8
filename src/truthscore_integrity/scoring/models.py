"""Data models for the scoring module."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from truthscore_integrity.ingestor.models import BASE_UNITS_PER_TOKEN

MAX_TOTAL_SCORE = 1300


class Tier(str, Enum):
    """Reputation tier assigned from the TruthScore total."""

    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"

    @classmethod
    def for_score(cls, total: float) -> Tier:
        """Return the tier whose threshold the total reaches."""
        for tier, threshold in reversed(TIER_THRESHOLDS):
            if total >= threshold:
                return tier
        return cls.BRONZE


# Minimum total for each tier, ascending
TIER_THRESHOLDS: tuple[tuple[Tier, int], ...] = (
    (Tier.BRONZE, 0),
    (Tier.SILVER, 200),
    (Tier.GOLD, 400),
    (Tier.PLATINUM, 650),
    (Tier.DIAMOND, 900),
)


@dataclass(frozen=True)
class TraderAggregate:
    """Running win/loss totals for one wallet.

    Aggregates only grow as resolved bets arrive; ``correct`` is the one
    explicit path that can move a counter backwards.

    Attributes:
        address: Wallet address (lowercase).
        total_bets: Number of resolved bets.
        wins: Number of winning bets.
        losses: Number of losing bets.
        total_volume: Total staked volume in base units (wei).
        first_bet_at: When the wallet's first resolved bet was placed.
        last_bet_at: When the wallet's latest resolved bet was placed.
    """

    address: str
    total_bets: int = 0
    wins: int = 0
    losses: int = 0
    total_volume: Decimal = Decimal("0")
    first_bet_at: datetime | None = None
    last_bet_at: datetime | None = None

    @property
    def win_rate(self) -> float:
        """Return the raw win rate (0.0 when there are no bets)."""
        if self.total_bets <= 0:
            return 0.0
        return max(0, min(self.wins, self.total_bets)) / self.total_bets

    @property
    def volume_tokens(self) -> Decimal:
        """Return total volume in whole tokens."""
        return self.total_volume / BASE_UNITS_PER_TOKEN

    def record(
        self,
        won: bool,
        amount: Decimal = Decimal("0"),
        placed_at: datetime | None = None,
    ) -> TraderAggregate:
        """Return a new aggregate with one more resolved bet applied."""
        placed_at = placed_at or datetime.now(UTC)
        stake = amount if amount > 0 else Decimal("0")
        return replace(
            self,
            total_bets=self.total_bets + 1,
            wins=self.wins + (1 if won else 0),
            losses=self.losses + (0 if won else 1),
            total_volume=self.total_volume + stake,
            first_bet_at=min(self.first_bet_at, placed_at) if self.first_bet_at else placed_at,
            last_bet_at=max(self.last_bet_at, placed_at) if self.last_bet_at else placed_at,
        )

    def correct(
        self,
        *,
        wins: int = 0,
        losses: int = 0,
        volume: Decimal = Decimal("0"),
    ) -> TraderAggregate:
        """Return a new aggregate with signed corrections applied.

        Counters never drop below zero.
        """
        new_wins = max(0, self.wins + wins)
        new_losses = max(0, self.losses + losses)
        return replace(
            self,
            wins=new_wins,
            losses=new_losses,
            total_bets=new_wins + new_losses,
            total_volume=max(Decimal("0"), self.total_volume + volume),
        )

    @classmethod
    def from_outcomes(
        cls,
        address: str,
        outcomes: list[tuple[bool, Decimal]],
    ) -> TraderAggregate:
        """Build an aggregate from ``(won, amount)`` pairs."""
        aggregate = cls(address=address.lower())
        for won, amount in outcomes:
            aggregate = aggregate.record(won, amount)
        return aggregate


@dataclass(frozen=True)
class TruthScore:
    """Composite reputation score derived from a TraderAggregate.

    Attributes:
        address: Wallet the score belongs to.
        skill_score: Wilson-bounded edge over a coin flip (0-500).
        activity_score: Logarithmic credit for wins (0-500).
        volume_bonus: Logarithmic credit for staked volume (0-200).
        consistency_bonus: Sharpe-like steadiness bonus (0-100).
        total: Sum of the components, capped at 1300.
        tier: Tier assigned from the total.
        wilson_lower: Wilson lower bound of the win rate.
        raw_win_rate: Observed win rate.
        sample_size: Number of resolved bets behind the score.
        computed_at: When the score was computed.
    """

    address: str
    skill_score: int
    activity_score: int
    volume_bonus: int
    consistency_bonus: int
    total: int
    tier: Tier
    wilson_lower: float = 0.0
    raw_win_rate: float = 0.0
    sample_size: int = 0
    computed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary for caching."""
        return {
            "address": self.address,
            "skill_score": self.skill_score,
            "activity_score": self.activity_score,
            "volume_bonus": self.volume_bonus,
            "consistency_bonus": self.consistency_bonus,
            "total": self.total,
            "tier": self.tier.value,
            "wilson_lower": self.wilson_lower,
            "raw_win_rate": self.raw_win_rate,
            "sample_size": self.sample_size,
            "computed_at": self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TruthScore:
        """Deserialize from a cached dictionary."""
        return cls(
            address=str(data["address"]),
            skill_score=int(data["skill_score"]),  # type: ignore[arg-type]
            activity_score=int(data["activity_score"]),  # type: ignore[arg-type]
            volume_bonus=int(data["volume_bonus"]),  # type: ignore[arg-type]
            consistency_bonus=int(data["consistency_bonus"]),  # type: ignore[arg-type]
            total=int(data["total"]),  # type: ignore[arg-type]
            tier=Tier(data["tier"]),
            wilson_lower=float(data.get("wilson_lower", 0.0)),  # type: ignore[arg-type]
            raw_win_rate=float(data.get("raw_win_rate", 0.0)),  # type: ignore[arg-type]
            sample_size=int(data.get("sample_size", 0)),  # type: ignore[arg-type]
            computed_at=datetime.fromisoformat(str(data["computed_at"])),
        )


@dataclass(frozen=True)
class DisplayedScore:
    """Leaderboard view of a TruthScore after eligibility gating.

    Gating changes what is shown, never the underlying score.

    Attributes:
        score: The underlying TruthScore.
        eligible: Whether the wallet may appear in public rankings.
        sample_multiplier: Weight applied to activity and volume (0-1).
        maturity_capped: Whether the account-age cap was applied.
        displayed_total: Total shown publicly.
        displayed_tier: Tier derived from the displayed total.
        reason: Why the wallet is ineligible, if it is.
    """

    score: TruthScore
    eligible: bool
    sample_multiplier: float
    maturity_capped: bool
    displayed_total: int
    displayed_tier: Tier
    reason: str | None = None


@dataclass(frozen=True)
class ScoreBreakdown:
    """Human-readable description of a score."""

    skill: str
    confidence: str
    explanation: str
