"""Storage layer - Database schemas and repositories."""

from truthscore_integrity.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from truthscore_integrity.storage.models import (
    AlertModel,
    AlertWalletModel,
    Base,
    FollowEdgeModel,
    TraderAggregateModel,
)
from truthscore_integrity.storage.repos import (
    AlertRepository,
    FollowRepository,
    TraderAggregateRepository,
)

__all__ = [
    "AlertModel",
    "AlertRepository",
    "AlertWalletModel",
    "Base",
    "DatabaseManager",
    "FollowEdgeModel",
    "FollowRepository",
    "TraderAggregateModel",
    "TraderAggregateRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
