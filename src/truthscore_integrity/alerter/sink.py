"""Alert sink: deduplicate, persist and notify.

Detectors return plain Alert values. The sink is where those values
become durable: repeats within the dedup window are dropped, the rest
are stored pending review and pushed to notification channels.
Operators then confirm or dismiss them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING

from truthscore_integrity.detector.models import Alert, AlertStatus
from truthscore_integrity.storage.repos import AlertRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from truthscore_integrity.alerter.dispatcher import AlertDispatcher
    from truthscore_integrity.alerter.history import AlertHistory

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager["AsyncSession"]]


class AlertSink:
    """Accepts detector alerts and manages their review lifecycle.

    Example:
        ```python
        sink = AlertSink(
            db.get_async_session,
            history=AlertHistory(redis, dedup_window_hours=24),
            dispatcher=AlertDispatcher([LogChannel()]),
        )

        for alert in detector.scan_batch(bets):
            await sink.submit(alert)

        for alert in await sink.pending():
            await sink.confirm(alert.id, reviewed_by="ops")
        ```
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        history: AlertHistory | None = None,
        dispatcher: AlertDispatcher | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            session_factory: Async context manager factory yielding an
                AsyncSession that commits on exit.
            history: Redis-backed dedup history. No dedup if None.
            dispatcher: Notification dispatcher. No notifications if None.
        """
        self._session_factory = session_factory
        self._history = history
        self._dispatcher = dispatcher

    async def submit(self, alert: Alert) -> bool:
        """Store and announce a new alert unless it is a duplicate.

        Args:
            alert: Alert from a detector.

        Returns:
            True if the alert was stored, False if it was deduplicated.
        """
        if self._history is not None and await self._history.is_duplicate(alert):
            logger.debug("Suppressed duplicate %s alert %s", alert.type.value, alert.id)
            return False

        async with self._session_factory() as session:
            await AlertRepository(session).insert(alert)

        if self._history is not None:
            await self._history.record(alert)

        logger.warning(
            "Gaming alert created: id=%s type=%s severity=%s wallets=%d",
            alert.id,
            alert.type.value,
            alert.severity.value,
            len(alert.wallets),
        )

        if self._dispatcher is not None:
            await self._dispatcher.dispatch(alert)
        return True

    async def submit_many(self, alerts: Iterable[Alert]) -> int:
        """Submit alerts in order.

        Returns:
            Number of alerts stored.
        """
        stored = 0
        for alert in alerts:
            if await self.submit(alert):
                stored += 1
        return stored

    async def _review(
        self,
        alert_id: str,
        status: AlertStatus,
        reviewed_by: str | None,
        notes: str | None,
    ) -> bool:
        async with self._session_factory() as session:
            updated = await AlertRepository(session).set_status(
                alert_id, status, reviewed_by=reviewed_by, notes=notes
            )

        if updated:
            logger.info("Alert %s %s by %s", alert_id, status.value, reviewed_by or "unknown")
        else:
            logger.warning("Alert %s not found or already reviewed", alert_id)
        return updated

    async def confirm(
        self,
        alert_id: str,
        *,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> bool:
        """Confirm a pending alert as genuine manipulation.

        Returns:
            True if confirmed, False if missing or already reviewed.
        """
        return await self._review(alert_id, AlertStatus.CONFIRMED, reviewed_by, notes)

    async def dismiss(
        self,
        alert_id: str,
        *,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> bool:
        """Dismiss a pending alert as a false positive.

        Returns:
            True if dismissed, False if missing or already reviewed.
        """
        return await self._review(alert_id, AlertStatus.DISMISSED, reviewed_by, notes)

    async def get(self, alert_id: str) -> Alert | None:
        """Get an alert by ID."""
        async with self._session_factory() as session:
            return await AlertRepository(session).get(alert_id)

    async def pending(self, limit: int = 100) -> list[Alert]:
        """List alerts awaiting review, oldest first."""
        async with self._session_factory() as session:
            return await AlertRepository(session).get_pending(limit)

    async def for_wallet(self, wallet: str, limit: int = 100) -> list[Alert]:
        """List alerts implicating a wallet, newest first."""
        async with self._session_factory() as session:
            return await AlertRepository(session).get_by_wallet(wallet, limit)
