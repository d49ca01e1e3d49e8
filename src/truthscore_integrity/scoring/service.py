"""TruthScore service backed by stored aggregates and a Redis cache.

Aggregates in the database are the source of truth; TruthScores are a
projection cached in Redis and rewritten whenever the aggregate changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from redis.asyncio import Redis

from truthscore_integrity.scoring.calculator import ScoreCalculator
from truthscore_integrity.scoring.models import DisplayedScore, TraderAggregate, TruthScore
from truthscore_integrity.storage.repos import TraderAggregateRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_SCORE_CACHE_TTL = 300  # 5 minutes
DEFAULT_CACHE_PREFIX = "truthscore:score:"

SessionFactory = Callable[[], AbstractAsyncContextManager["AsyncSession"]]


class ScoreService:
    """Loads aggregates, computes TruthScores and caches them.

    Cache failures are logged and treated as cache misses; they never
    stop a score from being computed.

    Example:
        ```python
        db = DatabaseManager(settings.database.url)
        redis = Redis.from_url(settings.redis.url)
        service = ScoreService(db.get_async_session, redis=redis)

        await service.record_result("0xabc...", won=True, amount=Decimal(10**18))
        score = await service.get_score("0xabc...")
        print(score.total, score.tier)
        ```
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        calculator: ScoreCalculator | None = None,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_SCORE_CACHE_TTL,
        cache_prefix: str = DEFAULT_CACHE_PREFIX,
    ) -> None:
        """Initialize the service.

        Args:
            session_factory: Async context manager factory yielding an
                AsyncSession that commits on exit.
            calculator: Score calculator. Defaults to standard parameters.
            redis: Optional Redis client for caching scores.
            cache_ttl_seconds: How long to cache computed scores.
            cache_prefix: Redis key prefix for cached scores.
        """
        self._session_factory = session_factory
        self.calculator = calculator or ScoreCalculator()
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._cache_prefix = cache_prefix
        self._write_lock = asyncio.Lock()
        self._generations: dict[str, int] = {}

    def _cache_key(self, address: str) -> str:
        """Generate cache key for a wallet score."""
        return f"{self._cache_prefix}{address.lower()}"

    def _generation(self, address: str) -> int:
        """Count of aggregate writes made through this service for a wallet."""
        return self._generations.get(address.lower(), 0)

    async def _store_fresh_score(self, aggregate: TraderAggregate) -> None:
        """Bump the wallet generation and cache the score of a just-written aggregate.

        Must be called with the write lock held.
        """
        key = aggregate.address.lower()
        self._generations[key] = self._generations.get(key, 0) + 1
        await self._cache_score(self.calculator.compute_score(aggregate))

    async def _get_cached_score(self, address: str) -> TruthScore | None:
        """Get cached score if available."""
        if not self._redis:
            return None

        try:
            cached = await self._redis.get(self._cache_key(address))
            if cached is None:
                return None
            data = json.loads(cached if isinstance(cached, str) else cached.decode())
            return TruthScore.from_dict(data)
        except Exception as e:
            logger.warning("Failed to get cached score for %s: %s", address[:10], e)
            return None

    async def _cache_score(self, score: TruthScore) -> None:
        """Cache a computed score."""
        if not self._redis:
            return

        try:
            await self._redis.set(
                self._cache_key(score.address),
                json.dumps(score.to_dict()),
                ex=self._cache_ttl,
            )
        except Exception as e:
            logger.warning("Failed to cache score for %s: %s", score.address[:10], e)

    async def invalidate(self, address: str) -> None:
        """Drop the cached score for a wallet."""
        if not self._redis:
            return

        try:
            await self._redis.delete(self._cache_key(address))
        except Exception as e:
            logger.warning("Failed to invalidate score for %s: %s", address[:10], e)

    async def get_aggregate(self, address: str) -> TraderAggregate:
        """Load a wallet's aggregate, or an empty one if none is stored."""
        async with self._session_factory() as session:
            aggregate = await TraderAggregateRepository(session).get(address)
        return aggregate or TraderAggregate(address=address.lower())

    async def get_score(self, address: str, *, force_refresh: bool = False) -> TruthScore:
        """Get a wallet's TruthScore.

        Args:
            address: Wallet address.
            force_refresh: If True, bypass the cache and recompute.

        Returns:
            The TruthScore. Unknown wallets score 0 / Bronze.
        """
        if not force_refresh:
            cached = await self._get_cached_score(address)
            if cached is not None:
                logger.debug("Using cached score for %s", address[:10])
                return cached

        generation = self._generation(address)
        aggregate = await self.get_aggregate(address)
        score = self.calculator.compute_score(aggregate)

        # A write that landed after the load has already cached a newer score
        if self._generation(address) == generation:
            await self._cache_score(score)
        else:
            logger.debug("Aggregate for %s changed during load, not caching", address[:10])
        return score

    async def get_displayed_score(
        self, address: str, *, now: datetime | None = None
    ) -> DisplayedScore:
        """Get the leaderboard view of a wallet's score."""
        aggregate = await self.get_aggregate(address)
        score = self.calculator.compute_score(aggregate)
        return self.calculator.display_score(score, aggregate, now=now)

    async def record_result(
        self,
        address: str,
        won: bool,
        amount: Decimal = Decimal("0"),
        placed_at: datetime | None = None,
    ) -> TraderAggregate:
        """Apply one resolved bet to a wallet's aggregate.

        Args:
            address: Wallet address.
            won: Whether the bet won.
            amount: Stake in base units.
            placed_at: When the bet was placed.

        Returns:
            The updated aggregate.
        """
        async with self._write_lock:
            async with self._session_factory() as session:
                repo = TraderAggregateRepository(session)
                current = await repo.get(address) or TraderAggregate(address=address.lower())
                updated = current.record(won, amount, placed_at)
                await repo.upsert(updated)
            await self._store_fresh_score(updated)

        logger.debug(
            "Recorded result for %s: won=%s total_bets=%d",
            address[:10],
            won,
            updated.total_bets,
        )
        return updated

    async def correct(
        self,
        address: str,
        *,
        wins: int = 0,
        losses: int = 0,
        volume: Decimal = Decimal("0"),
    ) -> TraderAggregate:
        """Apply an explicit signed correction to a wallet's aggregate."""
        async with self._write_lock:
            async with self._session_factory() as session:
                repo = TraderAggregateRepository(session)
                current = await repo.get(address) or TraderAggregate(address=address.lower())
                updated = current.correct(wins=wins, losses=losses, volume=volume)
                await repo.upsert(updated)
            await self._store_fresh_score(updated)

        logger.info(
            "Corrected aggregate for %s: wins%+d losses%+d",
            address[:10],
            wins,
            losses,
        )
        return updated
