"""Repository pattern implementations for data access.

This module provides clean data access abstractions for alerts,
trader aggregates and copy-trading follow edges.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from truthscore_integrity.cascade.models import FollowEdge
from truthscore_integrity.detector.models import Alert, AlertStatus
from truthscore_integrity.scoring.models import TraderAggregate
from truthscore_integrity.storage.models import (
    AlertModel,
    AlertWalletModel,
    FollowEdgeModel,
    TraderAggregateModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on round-trip; treat naive values as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def alert_from_model(model: AlertModel) -> Alert:
    """Create an Alert from its SQLAlchemy model."""
    return Alert.from_dict(
        {
            "id": model.id,
            "type": model.alert_type,
            "severity": model.severity,
            "wallets": model.wallets,
            "evidence": model.evidence,
            "recommended_action": model.recommended_action,
            "status": model.status,
            "created_at": _as_utc(model.created_at),
        }
    )


def aggregate_from_model(model: TraderAggregateModel) -> TraderAggregate:
    """Create a TraderAggregate from its SQLAlchemy model."""
    return TraderAggregate(
        address=model.address,
        total_bets=model.total_bets,
        wins=model.wins,
        losses=model.losses,
        total_volume=Decimal(model.total_volume),
        first_bet_at=_as_utc(model.first_bet_at),
        last_bet_at=_as_utc(model.last_bet_at),
    )


def edge_from_model(model: FollowEdgeModel) -> FollowEdge:
    """Create a FollowEdge from its SQLAlchemy model."""
    return FollowEdge(
        id=model.id,
        follower=model.follower,
        leader=model.leader,
        active=model.active,
        created_at=_as_utc(model.created_at) or datetime.now(UTC),
    )


class AlertRepository:
    """Repository for anti-gaming alert data access.

    Provides insert, lookup and review operations with async support.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def insert(self, alert: Alert) -> Alert:
        """Insert a new alert.

        Args:
            alert: Alert produced by a detector.

        Returns:
            The inserted Alert.
        """
        model = AlertModel(
            id=alert.id,
            alert_type=alert.type.value,
            severity=alert.severity.value,
            wallets=sorted(alert.wallets),
            evidence=alert.evidence.to_dict(),
            recommended_action=alert.recommended_action.value,
            status=alert.status.value,
            created_at=alert.created_at,
        )
        self.session.add(model)
        for wallet in sorted(alert.wallets):
            self.session.add(AlertWalletModel(alert_id=alert.id, wallet=wallet.lower()))
        await self.session.flush()
        return alert

    async def get(self, alert_id: str) -> Alert | None:
        """Get an alert by ID.

        Args:
            alert_id: Alert identifier.

        Returns:
            Alert if found, None otherwise.
        """
        result = await self.session.execute(select(AlertModel).where(AlertModel.id == alert_id))
        model = result.scalar_one_or_none()
        return alert_from_model(model) if model else None

    async def get_pending(self, limit: int = 100) -> list[Alert]:
        """Get alerts awaiting review, oldest first.

        Args:
            limit: Maximum number of results.

        Returns:
            List of pending Alerts.
        """
        result = await self.session.execute(
            select(AlertModel)
            .where(AlertModel.status == AlertStatus.PENDING.value)
            .order_by(AlertModel.created_at.asc())
            .limit(limit)
        )
        return [alert_from_model(m) for m in result.scalars().all()]

    async def get_by_wallet(self, wallet: str, limit: int = 100) -> list[Alert]:
        """Get alerts implicating a wallet, newest first.

        Args:
            wallet: Wallet address.
            limit: Maximum number of results.

        Returns:
            List of Alerts.
        """
        result = await self.session.execute(
            select(AlertModel)
            .join(AlertWalletModel, AlertWalletModel.alert_id == AlertModel.id)
            .where(AlertWalletModel.wallet == wallet.lower())
            .order_by(AlertModel.created_at.desc())
            .limit(limit)
        )
        return [alert_from_model(m) for m in result.scalars().all()]

    async def set_status(
        self,
        alert_id: str,
        status: AlertStatus,
        *,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> bool:
        """Move a pending alert to a review state.

        Args:
            alert_id: Alert identifier.
            status: Target status (dismissed or confirmed).
            reviewed_by: Operator who reviewed the alert.
            notes: Optional review notes.

        Returns:
            True if updated, False if the alert is missing or not pending.
        """
        if not AlertStatus.PENDING.can_transition_to(status):
            return False

        result = await self.session.execute(
            update(AlertModel)
            .where(
                AlertModel.id == alert_id,
                AlertModel.status == AlertStatus.PENDING.value,
            )
            .values(
                status=status.value,
                reviewed_by=reviewed_by,
                review_notes=notes,
                reviewed_at=datetime.now(UTC),
            )
        )
        return result.rowcount > 0


class TraderAggregateRepository:
    """Repository for per-wallet aggregate data access.

    Provides CRUD operations for trader aggregates with async support.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get(self, address: str) -> TraderAggregate | None:
        """Get an aggregate by wallet address.

        Args:
            address: Wallet address.

        Returns:
            TraderAggregate if found, None otherwise.
        """
        result = await self.session.execute(
            select(TraderAggregateModel).where(TraderAggregateModel.address == address.lower())
        )
        model = result.scalar_one_or_none()
        return aggregate_from_model(model) if model else None

    async def upsert(self, aggregate: TraderAggregate) -> TraderAggregate:
        """Insert or update an aggregate.

        Args:
            aggregate: Aggregate to store.

        Returns:
            The stored TraderAggregate.
        """
        values = {
            "address": aggregate.address.lower(),
            "total_bets": aggregate.total_bets,
            "wins": aggregate.wins,
            "losses": aggregate.losses,
            "total_volume": aggregate.total_volume,
            "first_bet_at": aggregate.first_bet_at,
            "last_bet_at": aggregate.last_bet_at,
            "updated_at": datetime.now(UTC),
        }
        update_columns = [
            "total_bets",
            "wins",
            "losses",
            "total_volume",
            "first_bet_at",
            "last_bet_at",
            "updated_at",
        ]

        if self.session.get_bind().dialect.name == "postgresql":
            stmt = pg_insert(TraderAggregateModel).values(**values)
        else:
            stmt = sqlite_insert(TraderAggregateModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={col: stmt.excluded[col] for col in update_columns},
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return aggregate

    async def delete(self, address: str) -> bool:
        """Delete an aggregate by wallet address.

        Args:
            address: Wallet address.

        Returns:
            True if deleted, False if not found.
        """
        result = await self.session.execute(
            delete(TraderAggregateModel).where(TraderAggregateModel.address == address.lower())
        )
        return result.rowcount > 0


class FollowRepository:
    """Repository for copy-trading follow edges.

    Edges are never updated in place except to deactivate them.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get_active_edges(self) -> list[FollowEdge]:
        """Get every active follow edge.

        Returns:
            List of active FollowEdges ordered by creation time.
        """
        result = await self.session.execute(
            select(FollowEdgeModel)
            .where(FollowEdgeModel.active.is_(True))
            .order_by(FollowEdgeModel.created_at.asc())
        )
        return [edge_from_model(m) for m in result.scalars().all()]

    async def get_edge(self, follower: str, leader: str) -> FollowEdge | None:
        """Get the active edge for a (follower, leader) pair.

        Args:
            follower: Follower wallet address.
            leader: Leader wallet address.

        Returns:
            The active FollowEdge if one exists, None otherwise.
        """
        result = await self.session.execute(
            select(FollowEdgeModel).where(
                FollowEdgeModel.follower == follower.lower(),
                FollowEdgeModel.leader == leader.lower(),
                FollowEdgeModel.active.is_(True),
            )
        )
        model = result.scalars().first()
        return edge_from_model(model) if model else None

    async def get_followers(self, leader: str) -> list[str]:
        """Get wallets actively following a leader."""
        result = await self.session.execute(
            select(FollowEdgeModel.follower).where(
                FollowEdgeModel.leader == leader.lower(),
                FollowEdgeModel.active.is_(True),
            )
        )
        return sorted(set(result.scalars().all()))

    async def get_following(self, follower: str) -> list[str]:
        """Get leaders a wallet actively follows."""
        result = await self.session.execute(
            select(FollowEdgeModel.leader).where(
                FollowEdgeModel.follower == follower.lower(),
                FollowEdgeModel.active.is_(True),
            )
        )
        return sorted(set(result.scalars().all()))

    async def insert(self, edge: FollowEdge) -> FollowEdge:
        """Insert a new active follow edge.

        Args:
            edge: Edge to persist.

        Returns:
            The persisted FollowEdge with its storage ID.
        """
        model = FollowEdgeModel(
            follower=edge.follower.lower(),
            leader=edge.leader.lower(),
            active=True,
            created_at=edge.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        return edge_from_model(model)

    async def deactivate(self, follower: str, leader: str) -> bool:
        """Deactivate the active edge for a pair.

        Args:
            follower: Follower wallet address.
            leader: Leader wallet address.

        Returns:
            True if an active edge was deactivated, False otherwise.
        """
        result = await self.session.execute(
            update(FollowEdgeModel)
            .where(
                FollowEdgeModel.follower == follower.lower(),
                FollowEdgeModel.leader == leader.lower(),
                FollowEdgeModel.active.is_(True),
            )
            .values(active=False, deactivated_at=datetime.now(UTC))
        )
        return result.rowcount > 0
