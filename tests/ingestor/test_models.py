"""Tests for ingestor data models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from truthscore_integrity.ingestor.models import Bet, BetSide, usable_bets


class TestBetSide:
    """Tests for BetSide normalization."""

    @pytest.mark.parametrize("value", [True, "bull", "YES", "up", " Long "])
    def test_bull_values(self, value: object) -> None:
        """Test values that map to the bull side."""
        assert BetSide.from_value(value) is BetSide.BULL

    @pytest.mark.parametrize("value", [False, "bear", "no", "DOWN", "short"])
    def test_bear_values(self, value: object) -> None:
        """Test values that map to the bear side."""
        assert BetSide.from_value(value) is BetSide.BEAR

    def test_unknown_value_raises(self) -> None:
        """Test that an unknown side is rejected."""
        with pytest.raises(ValueError, match="Unrecognized bet side"):
            BetSide.from_value("sideways")

    def test_opposite(self) -> None:
        """Test opposite side."""
        assert BetSide.BULL.opposite is BetSide.BEAR
        assert BetSide.BEAR.opposite is BetSide.BULL


class TestBet:
    """Tests for Bet model."""

    def test_from_dict_legacy_is_bull(self) -> None:
        """Test creating Bet from a payload with isBull and epoch seconds."""
        data = {
            "id": "0xtx1",
            "trader": "0xABCDEF0000000000000000000000000000000001",
            "platform": "PancakeSwap",
            "epoch": "42",
            "amount": "1500000000000000000",
            "isBull": False,
            "timestamp": 1704067200,
        }
        bet = Bet.from_dict(data)

        assert bet.id == "0xtx1"
        assert bet.trader == "0xabcdef0000000000000000000000000000000001"
        assert bet.platform == "pancakeswap"
        assert bet.epoch == 42
        assert bet.amount == Decimal("1500000000000000000")
        assert bet.side is BetSide.BEAR
        assert bet.timestamp == datetime(2024, 1, 1, tzinfo=UTC)

    def test_from_dict_millisecond_timestamp(self) -> None:
        """Test millisecond epochs are detected."""
        bet = Bet.from_dict(
            {"trader": "0xa", "side": "BULL", "timestamp": 1704067200000, "epoch": 1}
        )
        assert bet.timestamp == datetime(2024, 1, 1, tzinfo=UTC)

    def test_from_dict_iso_timestamp(self) -> None:
        """Test ISO timestamps with a Z suffix."""
        bet = Bet.from_dict(
            {"trader": "0xa", "side": "BEAR", "timestamp": "2024-01-01T00:00:00Z", "epoch": 1}
        )
        assert bet.timestamp == datetime(2024, 1, 1, tzinfo=UTC)

    def test_from_dict_without_side_raises(self) -> None:
        """Test that a payload without a side is rejected."""
        with pytest.raises(ValueError, match="no side"):
            Bet.from_dict({"trader": "0xa", "epoch": 1})

    def test_from_dict_invalid_amount_raises(self) -> None:
        """Test that an unparseable amount is rejected."""
        with pytest.raises(ValueError, match="Invalid bet amount"):
            Bet.from_dict({"trader": "0xa", "side": "BULL", "amount": "lots"})

    def test_properties(self, make_bet) -> None:
        """Test derived properties."""
        bet = make_bet(epoch=7, amount=Decimal("2500000000000000000"))

        assert bet.is_bull is True
        assert bet.amount_tokens == Decimal("2.5")
        assert bet.market_key == ("pancakeswap", 7)

    def test_to_dict(self, make_bet) -> None:
        """Test serialization."""
        bet = make_bet(side=BetSide.BEAR)
        data = bet.to_dict()

        assert data["side"] == "BEAR"
        assert data["amount"] == "1000000000000000000"
        assert data["timestamp"] == "2024-01-01T00:00:00+00:00"

    def test_frozen(self, make_bet) -> None:
        """Test that Bet is immutable."""
        bet = make_bet()
        with pytest.raises(AttributeError):
            bet.trader = "0xother"  # type: ignore[misc]


class TestUsableBets:
    """Tests for usable_bets filtering."""

    def test_none_is_empty(self) -> None:
        """Test None is treated as an empty batch."""
        assert usable_bets(None) == []

    def test_drops_malformed_entries(self, make_bet) -> None:
        """Test non-bets and bets without a trader are skipped."""
        good = make_bet()
        no_trader = make_bet(trader="")
        result = usable_bets([good, None, {"trader": "0xa"}, no_trader])

        assert result == [good]
