"""Tests for the TruthScore service."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from truthscore_integrity.scoring.models import Tier
from truthscore_integrity.scoring.service import ScoreService
from truthscore_integrity.storage.database import DatabaseManager

WALLET = "0xaaaa000000000000000000000000000000000001"
ONE_TOKEN = Decimal("1000000000000000000")

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[DatabaseManager]:
    """Create a SQLite database with the schema applied."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path}/scores.db")
    await manager.init_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client with an empty cache."""
    mock = AsyncMock()
    mock.get.return_value = None
    mock.set.return_value = True
    mock.delete.return_value = 1
    return mock


# ============================================================================
# Tests
# ============================================================================


class TestScoreService:
    """Tests for ScoreService."""

    async def test_unknown_wallet_scores_zero(self, db: DatabaseManager) -> None:
        """A wallet with no history scores 0 / Bronze."""
        service = ScoreService(db.get_async_session)
        score = await service.get_score(WALLET)

        assert score.total == 0
        assert score.tier is Tier.BRONZE
        assert score.address == WALLET

    async def test_record_result_accumulates(self, db: DatabaseManager) -> None:
        """Resolved bets accumulate into the stored aggregate."""
        service = ScoreService(db.get_async_session)
        placed = datetime(2024, 1, 1, tzinfo=UTC)

        await service.record_result(WALLET, True, ONE_TOKEN, placed)
        await service.record_result(WALLET, False, ONE_TOKEN, placed + timedelta(hours=1))
        aggregate = await service.record_result(WALLET, True, ONE_TOKEN, placed)

        assert aggregate.total_bets == 3
        assert aggregate.wins == 2
        assert aggregate.losses == 1

        stored = await service.get_aggregate(WALLET)
        assert stored.total_bets == 3
        assert stored.total_volume == 3 * ONE_TOKEN
        assert stored.first_bet_at == placed
        assert stored.last_bet_at == placed + timedelta(hours=1)

    async def test_concurrent_results_not_lost(self, db: DatabaseManager) -> None:
        """Concurrent writers for one wallet never lose an update."""
        service = ScoreService(db.get_async_session)

        await asyncio.gather(*(service.record_result(WALLET, i % 2 == 0) for i in range(10)))

        stored = await service.get_aggregate(WALLET)
        assert stored.total_bets == 10
        assert stored.wins == 5

    async def test_correct_never_negative(self, db: DatabaseManager) -> None:
        """Corrections clamp counters at zero."""
        service = ScoreService(db.get_async_session)
        await service.record_result(WALLET, True)

        corrected = await service.correct(WALLET, wins=-5, losses=2)

        assert corrected.wins == 0
        assert corrected.losses == 2
        assert corrected.total_bets == 2

    async def test_score_is_cached(self, db: DatabaseManager, mock_redis: AsyncMock) -> None:
        """Computed scores are written to the cache with a TTL."""
        service = ScoreService(db.get_async_session, redis=mock_redis, cache_ttl_seconds=60)
        await service.get_score(WALLET)

        mock_redis.set.assert_called_once()
        key = mock_redis.set.call_args.args[0]
        assert key == f"truthscore:score:{WALLET}"
        assert mock_redis.set.call_args.kwargs["ex"] == 60

    async def test_cached_score_returned(
        self, db: DatabaseManager, mock_redis: AsyncMock
    ) -> None:
        """A cache hit skips recomputation."""
        service = ScoreService(db.get_async_session, redis=mock_redis)
        await service.record_result(WALLET, True)
        fresh = await service.get_score(WALLET, force_refresh=True)

        cached = fresh.to_dict()
        cached["total"] = 999
        cached["tier"] = Tier.DIAMOND.value
        mock_redis.get.return_value = json.dumps(cached).encode()

        score = await service.get_score(WALLET)
        assert score.total == 999
        assert score.tier is Tier.DIAMOND

    async def test_record_refreshes_cache(
        self, db: DatabaseManager, mock_redis: AsyncMock
    ) -> None:
        """Writing a result caches the score of the updated aggregate."""
        service = ScoreService(db.get_async_session, redis=mock_redis)
        await service.record_result(WALLET, True)

        mock_redis.set.assert_called_once()
        key, payload = mock_redis.set.call_args.args
        assert key == f"truthscore:score:{WALLET}"
        assert json.loads(payload)["sample_size"] == 1

    async def test_invalidate(self, db: DatabaseManager, mock_redis: AsyncMock) -> None:
        """Invalidation deletes the cached score."""
        service = ScoreService(db.get_async_session, redis=mock_redis)
        await service.invalidate(WALLET.upper())

        mock_redis.delete.assert_called_once_with(f"truthscore:score:{WALLET}")

    async def test_read_racing_write_does_not_cache_stale_score(
        self, db: DatabaseManager, mock_redis: AsyncMock
    ) -> None:
        """A read that loaded before a write never overwrites the fresh score."""
        service = ScoreService(db.get_async_session, redis=mock_redis)
        load_aggregate = service.get_aggregate
        loaded = asyncio.Event()
        release = asyncio.Event()

        async def paused_get_aggregate(address: str):
            aggregate = await load_aggregate(address)
            loaded.set()
            await release.wait()
            return aggregate

        service.get_aggregate = paused_get_aggregate  # type: ignore[method-assign]

        reader = asyncio.create_task(service.get_score(WALLET))
        await loaded.wait()
        await service.record_result(WALLET, True)
        release.set()
        stale = await reader

        assert stale.sample_size == 0
        assert mock_redis.set.call_count == 1
        assert json.loads(mock_redis.set.call_args.args[1])["sample_size"] == 1

    async def test_cache_errors_fall_back(
        self, db: DatabaseManager, mock_redis: AsyncMock
    ) -> None:
        """Redis failures are treated as cache misses."""
        mock_redis.get.side_effect = ConnectionError("redis down")
        mock_redis.set.side_effect = ConnectionError("redis down")
        mock_redis.delete.side_effect = ConnectionError("redis down")
        service = ScoreService(db.get_async_session, redis=mock_redis)

        await service.record_result(WALLET, True)
        score = await service.get_score(WALLET)

        assert score.sample_size == 1

    async def test_displayed_score_gated(self, db: DatabaseManager) -> None:
        """Wallets under the leaderboard minimum are not displayed."""
        service = ScoreService(db.get_async_session)
        await service.record_result(WALLET, True)

        displayed = await service.get_displayed_score(WALLET)

        assert displayed.eligible is False
        assert displayed.displayed_total == 0
