"""Tests for storage repositories."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from truthscore_integrity.cascade.models import FollowEdge
from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertStatus,
    AlertType,
    RecommendedAction,
)
from truthscore_integrity.scoring.models import TraderAggregate
from truthscore_integrity.storage.database import DatabaseManager
from truthscore_integrity.storage.repos import (
    AlertRepository,
    FollowRepository,
    TraderAggregateRepository,
)

WALLET_A = "0xaaaa000000000000000000000000000000000001"
WALLET_B = "0xbbbb000000000000000000000000000000000002"
WALLET_C = "0xcccc000000000000000000000000000000000003"

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[DatabaseManager]:
    """Create a SQLite database with the schema applied."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path}/repos.db")
    await manager.init_schema()
    yield manager
    await manager.dispose()


def make_alert(
    wallets: set[str],
    *,
    alert_type: AlertType = AlertType.WASH_TRADING,
    created_at: datetime | None = None,
) -> Alert:
    """Create an alert implicating the given wallets."""
    return Alert(
        type=alert_type,
        severity=AlertSeverity.CRITICAL,
        wallets=frozenset(wallets),
        evidence=AlertEvidence(
            description="Bet both sides in 3 epochs",
            data_points={"wash_epoch_count": 3, "platforms": ["pancakeswap"]},
            epochs=(1, 2, 3),
        ),
        recommended_action=RecommendedAction.FLAG,
        created_at=created_at or datetime.now(UTC),
    )


# ============================================================================
# AlertRepository Tests
# ============================================================================


class TestAlertRepository:
    """Tests for AlertRepository."""

    async def test_insert_and_get(self, db: DatabaseManager) -> None:
        """Stored alerts round-trip with their evidence."""
        alert = make_alert({WALLET_A})
        async with db.get_async_session() as session:
            await AlertRepository(session).insert(alert)

        async with db.get_async_session() as session:
            loaded = await AlertRepository(session).get(alert.id)

        assert loaded is not None
        assert loaded.id == alert.id
        assert loaded.type is AlertType.WASH_TRADING
        assert loaded.wallets == frozenset({WALLET_A})
        assert loaded.evidence.epochs == (1, 2, 3)
        assert loaded.evidence.data_points["wash_epoch_count"] == 3
        assert loaded.status is AlertStatus.PENDING
        assert loaded.created_at.tzinfo is not None

    async def test_get_missing(self, db: DatabaseManager) -> None:
        """Unknown IDs return None."""
        async with db.get_async_session() as session:
            assert await AlertRepository(session).get("missing") is None

    async def test_get_pending_oldest_first(self, db: DatabaseManager) -> None:
        """Pending alerts are listed oldest first."""
        now = datetime.now(UTC)
        newer = make_alert({WALLET_A}, created_at=now)
        older = make_alert({WALLET_B}, created_at=now - timedelta(hours=1))
        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            await repo.insert(newer)
            await repo.insert(older)

        async with db.get_async_session() as session:
            pending = await AlertRepository(session).get_pending()

        assert [a.id for a in pending] == [older.id, newer.id]

    async def test_get_by_wallet(self, db: DatabaseManager) -> None:
        """Alerts are found through any implicated wallet."""
        cluster = make_alert({WALLET_A, WALLET_B, WALLET_C}, alert_type=AlertType.SYBIL_CLUSTER)
        solo = make_alert({WALLET_C})
        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            await repo.insert(cluster)
            await repo.insert(solo)

        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            for_b = await repo.get_by_wallet(WALLET_B.upper())
            for_c = await repo.get_by_wallet(WALLET_C)

        assert [a.id for a in for_b] == [cluster.id]
        assert {a.id for a in for_c} == {cluster.id, solo.id}

    async def test_set_status_only_from_pending(self, db: DatabaseManager) -> None:
        """Reviewed alerts cannot be reviewed again."""
        alert = make_alert({WALLET_A})
        async with db.get_async_session() as session:
            await AlertRepository(session).insert(alert)

        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            assert await repo.set_status(alert.id, AlertStatus.CONFIRMED, reviewed_by="ops")
            assert not await repo.set_status(alert.id, AlertStatus.DISMISSED)

        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            loaded = await repo.get(alert.id)
            pending = await repo.get_pending()

        assert loaded is not None
        assert loaded.status is AlertStatus.CONFIRMED
        assert pending == []

    async def test_set_status_rejects_pending_target(self, db: DatabaseManager) -> None:
        """Pending is not a review outcome."""
        alert = make_alert({WALLET_A})
        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            await repo.insert(alert)
            assert not await repo.set_status(alert.id, AlertStatus.PENDING)

    async def test_set_status_missing(self, db: DatabaseManager) -> None:
        """Unknown IDs are not updated."""
        async with db.get_async_session() as session:
            assert not await AlertRepository(session).set_status("missing", AlertStatus.DISMISSED)


# ============================================================================
# TraderAggregateRepository Tests
# ============================================================================


class TestTraderAggregateRepository:
    """Tests for TraderAggregateRepository."""

    async def test_upsert_insert_then_update(self, db: DatabaseManager) -> None:
        """Upsert creates then overwrites one row per address."""
        first_bet = datetime(2024, 1, 1, tzinfo=UTC)
        aggregate = TraderAggregate(
            address=WALLET_A,
            total_bets=10,
            wins=6,
            losses=4,
            total_volume=Decimal("40000000000000000000"),
            first_bet_at=first_bet,
            last_bet_at=first_bet,
        )
        async with db.get_async_session() as session:
            await TraderAggregateRepository(session).upsert(aggregate)

        updated = aggregate.record(True, Decimal("1000000000000000000"), first_bet)
        async with db.get_async_session() as session:
            await TraderAggregateRepository(session).upsert(updated)

        async with db.get_async_session() as session:
            loaded = await TraderAggregateRepository(session).get(WALLET_A.upper())

        assert loaded is not None
        assert loaded.total_bets == 11
        assert loaded.wins == 7
        assert loaded.losses == 4
        assert loaded.total_volume == Decimal("41000000000000000000")
        assert loaded.first_bet_at == first_bet

    async def test_get_missing(self, db: DatabaseManager) -> None:
        """Unknown addresses return None."""
        async with db.get_async_session() as session:
            assert await TraderAggregateRepository(session).get(WALLET_B) is None

    async def test_delete(self, db: DatabaseManager) -> None:
        """Delete reports whether a row was removed."""
        async with db.get_async_session() as session:
            repo = TraderAggregateRepository(session)
            await repo.upsert(TraderAggregate(address=WALLET_A, total_bets=1, wins=1))
            assert await repo.delete(WALLET_A) is True
            assert await repo.delete(WALLET_A) is False


# ============================================================================
# FollowRepository Tests
# ============================================================================


class TestFollowRepository:
    """Tests for FollowRepository."""

    async def test_insert_assigns_id(self, db: DatabaseManager) -> None:
        """Inserted edges come back with a storage ID."""
        async with db.get_async_session() as session:
            stored = await FollowRepository(session).insert(
                FollowEdge(follower=WALLET_A, leader=WALLET_B)
            )

        assert stored.id is not None
        assert stored.active is True
        assert stored.pair == (WALLET_A, WALLET_B)

    async def test_followers_and_following(self, db: DatabaseManager) -> None:
        """Active edges are queryable from both ends."""
        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            await repo.insert(FollowEdge(follower=WALLET_A, leader=WALLET_C))
            await repo.insert(FollowEdge(follower=WALLET_B, leader=WALLET_C))

        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            followers = await repo.get_followers(WALLET_C)
            following = await repo.get_following(WALLET_A)
            edges = await repo.get_active_edges()

        assert followers == [WALLET_A, WALLET_B]
        assert following == [WALLET_C]
        assert len(edges) == 2

    async def test_deactivate(self, db: DatabaseManager) -> None:
        """Deactivated edges disappear from active queries but stay stored."""
        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            await repo.insert(FollowEdge(follower=WALLET_A, leader=WALLET_B))

        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            assert await repo.deactivate(WALLET_A, WALLET_B) is True
            assert await repo.deactivate(WALLET_A, WALLET_B) is False

        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            assert await repo.get_edge(WALLET_A, WALLET_B) is None
            assert await repo.get_active_edges() == []

    async def test_refollow_after_deactivate(self, db: DatabaseManager) -> None:
        """Following again inserts a fresh active edge."""
        async with db.get_async_session() as session:
            repo = FollowRepository(session)
            first = await repo.insert(FollowEdge(follower=WALLET_A, leader=WALLET_B))
            await repo.deactivate(WALLET_A, WALLET_B)
            second = await repo.insert(FollowEdge(follower=WALLET_A, leader=WALLET_B))

        async with db.get_async_session() as session:
            edge = await FollowRepository(session).get_edge(WALLET_A, WALLET_B)

        assert edge is not None
        assert edge.id == second.id
        assert edge.id != first.id
