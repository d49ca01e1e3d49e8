"""Statistical helpers shared by the anti-gaming detectors."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import TypeVar

T = TypeVar("T")

BASELINE_WIN_RATE = 0.5


def binomial_z_score(wins: int, total: int, p0: float = BASELINE_WIN_RATE) -> float:
    """Z-score of an observed win rate against a baseline proportion.

    Args:
        wins: Number of successes.
        total: Number of trials. Must be positive.
        p0: Baseline success probability.

    Returns:
        The z-score, or NaN when it is undefined.
    """
    if total <= 0 or not 0.0 < p0 < 1.0:
        return math.nan
    p_hat = wins / total
    std_dev = math.sqrt(p0 * (1 - p0) / total)
    return (p_hat - p0) / std_dev


def upper_tail_probability(z: float) -> float:
    """One-sided standard normal tail probability P(Z >= z)."""
    if math.isnan(z):
        return 1.0
    return 0.5 * math.erfc(z / math.sqrt(2))


def two_sided_probability(z: float) -> float:
    """Two-sided standard normal tail probability P(|Z| >= |z|)."""
    if math.isnan(z):
        return 1.0
    return math.erfc(abs(z) / math.sqrt(2))


def unique_in_order(items: Iterable[T]) -> list[T]:
    """Deduplicate while keeping first-seen order."""
    seen: set[T] = set()
    result: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
