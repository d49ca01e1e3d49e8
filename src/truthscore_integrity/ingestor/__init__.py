"""Ingestion boundary - normalized bet stream consumed by the engine."""

from truthscore_integrity.ingestor.models import (
    BASE_UNITS_PER_TOKEN,
    Bet,
    BetSide,
    usable_bets,
)

__all__ = [
    "BASE_UNITS_PER_TOKEN",
    "Bet",
    "BetSide",
    "usable_bets",
]
