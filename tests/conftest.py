"""Shared fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from truthscore_integrity.ingestor.models import Bet, BetSide

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)

BetFactory = Callable[..., Bet]


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference time for bet timestamps."""
    return BASE_TIME


@pytest.fixture
def make_bet() -> BetFactory:
    """Return a factory for bets with sensible defaults."""
    counter = {"n": 0}

    def _make(
        trader: str = "0xaaaa000000000000000000000000000000000001",
        *,
        epoch: int = 1,
        side: BetSide = BetSide.BULL,
        amount: Decimal = Decimal("1000000000000000000"),
        platform: str = "pancakeswap",
        seconds: float = 0,
    ) -> Bet:
        counter["n"] += 1
        return Bet(
            id=f"bet-{counter['n']}",
            trader=trader,
            platform=platform,
            epoch=epoch,
            amount=amount,
            side=side,
            timestamp=BASE_TIME + timedelta(seconds=seconds),
        )

    return _make
