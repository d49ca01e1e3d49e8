"""Copy-trading cascade prevention.

Copy relationships must terminate one hop from an original performer.
Chained copying (A copies B who copies C) adds execution delay and price
slippage at every hop, which corrupts both the copied trader's score and
the copier's capital. CascadeGuard owns the follow graph and refuses any
follow that would create a chain or a cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from truthscore_integrity.cascade.graph import (
    DEFAULT_MAX_TRAVERSAL,
    FollowGraph,
    normalize_address,
)
from truthscore_integrity.cascade.models import (
    CopyChainNode,
    CopyEligibility,
    CopyStatus,
    FollowEdge,
    FollowRejection,
    FollowResult,
    FollowValidation,
)
from truthscore_integrity.storage.repos import FollowRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from truthscore_integrity.config import CascadeSettings
    from truthscore_integrity.ingestor.models import Bet
    from truthscore_integrity.scoring.models import TruthScore

logger = logging.getLogger(__name__)

DEFAULT_ORIGINAL_BET_WINDOW_SECONDS = 30

SessionFactory = Callable[[], AbstractAsyncContextManager["AsyncSession"]]
ScoreLookup = Callable[[str], Awaitable["TruthScore | None"]]


class CascadeGuard:
    """Maintains the follow graph and enforces the single-hop copy rule.

    Reads (copy_depth, can_be_copied, status, chain) never wait on the
    write lock. Writes (follow, unfollow, load) are serialized by one
    asyncio lock so a concurrent pair of follows cannot slip a cycle or
    a chained leader past validation.

    Example:
        ```python
        guard = CascadeGuard(session_factory=db.get_async_session)
        await guard.load()

        result = await guard.follow("0xfollower...", "0xleader...")
        if not result.success:
            print(result.rejection, result.error)
        ```
    """

    def __init__(
        self,
        *,
        graph: FollowGraph | None = None,
        session_factory: SessionFactory | None = None,
        score_lookup: ScoreLookup | None = None,
        original_bet_window_seconds: int = DEFAULT_ORIGINAL_BET_WINDOW_SECONDS,
        max_traversal: int = DEFAULT_MAX_TRAVERSAL,
    ) -> None:
        """Initialize the guard.

        Args:
            graph: Existing follow graph. A new empty graph if None.
            session_factory: Async context manager factory yielding an
                AsyncSession. Follow writes are persisted when given.
            score_lookup: Async callable returning a wallet's TruthScore,
                used to annotate copy chains.
            original_bet_window_seconds: Seconds into a round during which
                a bet still counts as original (default 30).
            max_traversal: Upper bound on wallets visited per graph walk.
        """
        self.graph = graph or FollowGraph(max_traversal=max_traversal)
        self.original_bet_window_seconds = original_bet_window_seconds
        self._session_factory = session_factory
        self._score_lookup = score_lookup
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: CascadeSettings,
        *,
        session_factory: SessionFactory | None = None,
        score_lookup: ScoreLookup | None = None,
    ) -> CascadeGuard:
        """Build a guard from configuration."""
        return cls(
            session_factory=session_factory,
            score_lookup=score_lookup,
            original_bet_window_seconds=settings.original_bet_window_seconds,
            max_traversal=settings.max_traversal,
        )

    # Reads

    def copy_depth(self, address: str) -> int:
        """Hops from a wallet back to an original source (0 if it follows no one)."""
        return self.graph.copy_depth(address)

    def can_be_copied(self, address: str) -> CopyEligibility:
        """Check whether a wallet may be followed.

        Only original sources (copy depth 0) may be copied.
        """
        depth = self.copy_depth(address)
        if depth > 0:
            return CopyEligibility(
                allowed=False,
                reason="Cannot copy a copy trader",
                copy_depth=depth,
                is_copy_trader=True,
            )
        return CopyEligibility(
            allowed=True,
            reason="Original trader - allowed",
            copy_depth=0,
            is_copy_trader=False,
        )

    def status(self, address: str) -> CopyStatus:
        """Describe a wallet's position in the follow graph."""
        wallet = normalize_address(address)
        depth = self.copy_depth(wallet)
        original_source = None
        if depth > 0:
            original_source = self.graph.path_to_source(wallet)[-1]

        following = self.graph.leaders_of(wallet)
        return CopyStatus(
            is_copy_trader=bool(following),
            copy_depth=depth,
            original_source=original_source,
            followed_by=tuple(self.graph.followers_of(wallet)),
            following=tuple(following),
        )

    def chain(
        self,
        address: str,
        scores: Mapping[str, TruthScore] | None = None,
    ) -> list[CopyChainNode]:
        """List the copy chain of a wallet, original source first.

        Args:
            address: Wallet whose chain to describe.
            scores: Optional TruthScores by address for tier/score labels.

        Returns:
            Nodes from the depth-0 source down to the wallet itself.
        """
        scores = scores or {}
        nodes = []
        for wallet in reversed(self.graph.path_to_source(address)):
            score = scores.get(wallet)
            nodes.append(
                CopyChainNode(
                    address=wallet,
                    depth=self.copy_depth(wallet),
                    tier=score.tier.value if score is not None else None,
                    score=score.total if score is not None else None,
                )
            )
        return nodes

    async def chain_with_scores(self, address: str) -> list[CopyChainNode]:
        """Like ``chain`` but fetches scores through the score lookup."""
        if self._score_lookup is None:
            return self.chain(address)

        scores: dict[str, TruthScore] = {}
        for wallet in self.graph.path_to_source(address):
            score = await self._score_lookup(wallet)
            if score is not None:
                scores[wallet] = score
        return self.chain(address, scores)

    def validate_follow(self, follower: str, leader: str) -> FollowValidation:
        """Check whether ``follower`` may start copying ``leader``.

        Rejections, in the order they are checked: invalid address, self
        follow, a cycle (leader already transitively follows follower),
        a leader that is itself a copy trader, a follower that others
        already copy, an existing active edge.
        """
        follower = normalize_address(follower)
        leader = normalize_address(leader)

        if not follower or not leader:
            return FollowValidation.reject(FollowRejection.INVALID_ADDRESS, "Invalid address")
        if follower == leader:
            return FollowValidation.reject(FollowRejection.SELF_FOLLOW, "Cannot follow yourself")
        if self.graph.reaches(leader, follower):
            return FollowValidation.reject(
                FollowRejection.CIRCULAR_FOLLOW,
                "This follow would create a circular chain",
            )
        eligibility = self.can_be_copied(leader)
        if not eligibility.allowed:
            return FollowValidation.reject(
                FollowRejection.LEADER_IS_COPY_TRADER, eligibility.reason
            )
        # Copying would push the follower's own copiers to depth 2
        if self.graph.followers_of(follower):
            return FollowValidation.reject(
                FollowRejection.FOLLOWER_IS_COPIED,
                "Cannot copy while being copied by others",
            )
        if self.graph.has_edge(follower, leader):
            return FollowValidation.reject(
                FollowRejection.ALREADY_FOLLOWING, "Already following this trader"
            )
        return FollowValidation.ok()

    def is_bet_original(self, bet: Bet, round_start: datetime | float) -> bool:
        """Return True if a bet was placed early enough in its round to be copied.

        Args:
            bet: The leader's bet.
            round_start: Round start as a datetime or epoch seconds.
        """
        if isinstance(round_start, datetime):
            start = round_start if round_start.tzinfo else round_start.replace(tzinfo=UTC)
        else:
            start = datetime.fromtimestamp(float(round_start), tz=UTC)

        seconds_from_start = (bet.timestamp - start).total_seconds()
        return seconds_from_start <= self.original_bet_window_seconds

    # Writes

    async def load(self) -> int:
        """Replace the in-memory graph with the active edges in storage.

        Returns:
            Number of edges loaded.
        """
        if self._session_factory is None:
            return len(self.graph)

        async with self._write_lock:
            async with self._session_factory() as session:
                edges = await FollowRepository(session).get_active_edges()
            self.graph.clear()
            for edge in edges:
                self.graph.add_edge(edge)

        logger.info("Loaded %d follow edges", len(edges))
        return len(edges)

    async def follow(self, follower: str, leader: str) -> FollowResult:
        """Validate and create a follow edge.

        Returns:
            FollowResult carrying the new edge, or the rejection reason.
        """
        follower = normalize_address(follower)
        leader = normalize_address(leader)

        async with self._write_lock:
            validation = self.validate_follow(follower, leader)
            if not validation.valid:
                logger.debug(
                    "Follow rejected: follower=%s leader=%s reason=%s",
                    follower[:10],
                    leader[:10],
                    validation.rejection,
                )
                return FollowResult(
                    success=False,
                    error=validation.error,
                    rejection=validation.rejection,
                )

            edge = FollowEdge(follower=follower, leader=leader)
            if self._session_factory is not None:
                try:
                    async with self._session_factory() as session:
                        edge = await FollowRepository(session).insert(edge)
                except SQLAlchemyError as e:
                    logger.error(
                        "Failed to persist follow %s -> %s: %s", follower[:10], leader[:10], e
                    )
                    return FollowResult(
                        success=False,
                        error="Database error creating follow",
                        rejection=FollowRejection.STORAGE_ERROR,
                    )

            self.graph.add_edge(edge)

        logger.info("Follow created: follower=%s leader=%s", follower[:10], leader[:10])
        return FollowResult(success=True, edge=edge)

    async def unfollow(self, follower: str, leader: str) -> FollowResult:
        """Deactivate an active follow edge."""
        follower = normalize_address(follower)
        leader = normalize_address(leader)

        async with self._write_lock:
            existing = self.graph.get_edge(follower, leader)
            if existing is None:
                return FollowResult(
                    success=False,
                    error="Not following this trader",
                    rejection=FollowRejection.NOT_FOLLOWING,
                )

            if self._session_factory is not None:
                try:
                    async with self._session_factory() as session:
                        await FollowRepository(session).deactivate(follower, leader)
                except SQLAlchemyError as e:
                    logger.error(
                        "Failed to deactivate follow %s -> %s: %s",
                        follower[:10],
                        leader[:10],
                        e,
                    )
                    return FollowResult(
                        success=False,
                        error="Database error removing follow",
                        rejection=FollowRejection.STORAGE_ERROR,
                    )

            self.graph.remove_edge(follower, leader)

        logger.info("Follow removed: follower=%s leader=%s", follower[:10], leader[:10])
        return FollowResult(
            success=True,
            edge=FollowEdge(
                follower=existing.follower,
                leader=existing.leader,
                active=False,
                created_at=existing.created_at,
                id=existing.id,
            ),
        )
