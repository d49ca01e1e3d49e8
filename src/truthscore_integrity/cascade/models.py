"""Data models for the cascade prevention module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


@dataclass(frozen=True)
class FollowEdge:
    """A directed copy-trading relationship: ``follower`` copies ``leader``.

    Attributes:
        follower: Wallet that mirrors the leader's bets.
        leader: Wallet being copied.
        active: False once the follower has unfollowed.
        created_at: When the follow was created.
        id: Storage identifier, if persisted.
    """

    follower: str
    leader: str
    active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: int | None = None

    @property
    def pair(self) -> tuple[str, str]:
        """Return the (follower, leader) pair."""
        return (self.follower, self.leader)


class FollowRejection(str, Enum):
    """Why a follow request was refused."""

    SELF_FOLLOW = "SELF_FOLLOW"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    LEADER_IS_COPY_TRADER = "LEADER_IS_COPY_TRADER"
    FOLLOWER_IS_COPIED = "FOLLOWER_IS_COPIED"
    CIRCULAR_FOLLOW = "CIRCULAR_FOLLOW"
    ALREADY_FOLLOWING = "ALREADY_FOLLOWING"
    NOT_FOLLOWING = "NOT_FOLLOWING"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass(frozen=True)
class FollowValidation:
    """Outcome of validating a follow request."""

    valid: bool
    error: str | None = None
    rejection: FollowRejection | None = None

    @classmethod
    def ok(cls) -> FollowValidation:
        """Return a passing validation."""
        return cls(valid=True)

    @classmethod
    def reject(cls, rejection: FollowRejection, error: str) -> FollowValidation:
        """Return a failing validation."""
        return cls(valid=False, error=error, rejection=rejection)


@dataclass(frozen=True)
class FollowResult:
    """Outcome of a follow or unfollow write."""

    success: bool
    edge: FollowEdge | None = None
    error: str | None = None
    rejection: FollowRejection | None = None


@dataclass(frozen=True)
class CopyEligibility:
    """Whether a wallet may be copied.

    Attributes:
        allowed: True only for original sources (copy depth 0).
        reason: Human-readable explanation.
        copy_depth: Hops from the wallet back to an original source.
        is_copy_trader: True if the wallet itself follows someone.
    """

    allowed: bool
    reason: str
    copy_depth: int
    is_copy_trader: bool


@dataclass(frozen=True)
class CopyStatus:
    """Copy-trading position of a wallet in the follow graph.

    Attributes:
        is_copy_trader: True if the wallet follows anyone.
        copy_depth: Hops back to an original source.
        original_source: Depth-0 wallet reached by walking leaders, or None
            when the wallet is itself an original source.
        followed_by: Wallets actively following this one.
        following: Wallets this one actively follows.
    """

    is_copy_trader: bool
    copy_depth: int
    original_source: str | None
    followed_by: tuple[str, ...] = ()
    following: tuple[str, ...] = ()


@dataclass(frozen=True)
class CopyChainNode:
    """One wallet in a copy chain, annotated for display."""

    address: str
    depth: int
    tier: str | None = None
    score: int | None = None
