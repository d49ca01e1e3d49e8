"""Copy-trading cascade prevention - follow graph and single-hop rule.

Import ``CascadeGuard`` from ``truthscore_integrity.cascade.guard``.
"""

from truthscore_integrity.cascade.graph import FollowGraph, normalize_address
from truthscore_integrity.cascade.models import (
    CopyChainNode,
    CopyEligibility,
    CopyStatus,
    FollowEdge,
    FollowRejection,
    FollowResult,
    FollowValidation,
)

__all__ = [
    "CopyChainNode",
    "CopyEligibility",
    "CopyStatus",
    "FollowEdge",
    "FollowGraph",
    "FollowRejection",
    "FollowResult",
    "FollowValidation",
    "normalize_address",
]
