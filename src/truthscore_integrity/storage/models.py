"""SQLAlchemy models for persistent storage.

This module defines the database schema for detector alerts, per-wallet
score aggregates and copy-trading follow edges.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class AlertModel(Base):
    """SQLAlchemy model for anti-gaming alerts.

    Stores detector output awaiting operator review.
    """

    __tablename__ = "gaming_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    alert_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    wallets: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    evidence: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    recommended_action: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_gaming_alerts_status", "status"),
        Index("idx_gaming_alerts_type", "alert_type"),
        Index("idx_gaming_alerts_created", "created_at"),
    )


class AlertWalletModel(Base):
    """Index of alert membership by wallet.

    One row per (alert, wallet) so alerts can be looked up by address.
    """

    __tablename__ = "gaming_alert_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String(36), nullable=False)
    wallet: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("idx_gaming_alert_wallets_wallet", "wallet"),
        Index("idx_gaming_alert_wallets_alert", "alert_id"),
    )


class TraderAggregateModel(Base):
    """SQLAlchemy model for per-wallet resolved-bet aggregates."""

    __tablename__ = "trader_aggregates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    total_bets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_volume: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False, default=0)
    first_bet_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_bet_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_trader_aggregates_address", "address"),)


class FollowEdgeModel(Base):
    """SQLAlchemy model for copy-trading follow edges.

    Inactive rows are kept as history; re-following inserts a new row.
    """

    __tablename__ = "follow_edges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower: Mapped[str] = mapped_column(String(64), nullable=False)
    leader: Mapped[str] = mapped_column(String(64), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_follow_edges_follower", "follower"),
        Index("idx_follow_edges_leader", "leader"),
        Index("idx_follow_edges_active", "active"),
    )
