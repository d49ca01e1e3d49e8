"""Data models for the ingestion boundary.

Platform adapters normalize whatever they scrape into ``Bet`` values;
everything downstream of ingestion works on this one shape.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

# Wei per whole native token (BNB, ETH, MATIC all use 18 decimals)
BASE_UNITS_PER_TOKEN = Decimal("1000000000000000000")


class BetSide(str, Enum):
    """Which outcome of a binary market a bet backs."""

    BULL = "BULL"
    BEAR = "BEAR"

    @classmethod
    def from_value(cls, value: Any) -> BetSide:
        """Normalize a boolean or string side into a BetSide.

        ``True`` means bull/yes/up, ``False`` means bear/no/down.
        """
        if isinstance(value, BetSide):
            return value
        if isinstance(value, bool):
            return cls.BULL if value else cls.BEAR
        normalized = str(value).strip().upper()
        if normalized in ("BULL", "YES", "UP", "BUY", "LONG", "TRUE"):
            return cls.BULL
        if normalized in ("BEAR", "NO", "DOWN", "SELL", "SHORT", "FALSE"):
            return cls.BEAR
        raise ValueError(f"Unrecognized bet side: {value!r}")

    @property
    def opposite(self) -> BetSide:
        """Return the other side of the market."""
        return BetSide.BEAR if self is BetSide.BULL else BetSide.BULL


@dataclass(frozen=True)
class Bet:
    """A single normalized bet from any platform.

    Attributes:
        id: Platform-unique bet identifier.
        trader: Wallet address that placed the bet (lowercase).
        platform: Source platform name (e.g. "pancakeswap").
        epoch: Market or round identifier the bet belongs to.
        amount: Stake in base units (wei for EVM chains).
        side: Which outcome the bet backs.
        timestamp: When the bet was placed.
    """

    id: str
    trader: str
    platform: str
    epoch: int
    amount: Decimal
    side: BetSide
    timestamp: datetime

    @property
    def is_bull(self) -> bool:
        """Return True if the bet backs the bull/yes outcome."""
        return self.side is BetSide.BULL

    @property
    def amount_tokens(self) -> Decimal:
        """Return the stake in whole tokens."""
        return self.amount / BASE_UNITS_PER_TOKEN

    @property
    def market_key(self) -> tuple[str, int]:
        """Return the (platform, epoch) pair identifying the market round."""
        return (self.platform, self.epoch)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bet:
        """Create a Bet from an ingestion payload.

        Accepts either ``side`` or the legacy boolean ``isBull``/``is_bull``
        keys, epoch-second, millisecond or ISO timestamps, and string amounts.
        """
        side_value = data.get("side")
        if side_value is None:
            side_value = data.get("is_bull", data.get("isBull"))
        if side_value is None:
            raise ValueError("Bet payload has no side")

        try:
            amount = Decimal(str(data.get("amount", "0")))
        except InvalidOperation as e:
            raise ValueError(f"Invalid bet amount: {data.get('amount')!r}") from e

        return cls(
            id=str(data.get("id", "")),
            trader=str(data.get("trader", "")).lower(),
            platform=str(data.get("platform", "")).lower(),
            epoch=int(data.get("epoch", 0)),
            amount=amount,
            side=BetSide.from_value(side_value),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "trader": self.trader,
            "platform": self.platform,
            "epoch": self.epoch,
            "amount": str(self.amount),
            "side": self.side.value,
            "timestamp": self.timestamp.isoformat(),
        }


def _parse_timestamp(value: Any) -> datetime:
    """Parse a timestamp from seconds, milliseconds, ISO string or datetime."""
    if value is None:
        return datetime.now(UTC)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        seconds = float(value)
        # Millisecond epochs are 13 digits
        if seconds > 1e11:
            seconds /= 1000.0
        return datetime.fromtimestamp(seconds, tz=UTC)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def usable_bets(bets: Iterable[Any] | None) -> list[Bet]:
    """Drop anything a detector cannot reason about.

    ``None`` is treated as an empty batch; non-Bet items and bets without
    a trader address are skipped rather than rejected.
    """
    if not bets:
        return []
    return [
        bet
        for bet in bets
        if isinstance(bet, Bet) and isinstance(bet.trader, str) and bet.trader
    ]
