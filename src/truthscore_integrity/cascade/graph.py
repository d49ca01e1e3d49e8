"""In-memory copy-trading follow graph.

Wallets are plain address keys in two adjacency maps (follower to
leaders, leader to followers); no node objects reference each other.
Copy depth is memoized per wallet and the memo is dropped on every
write.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from truthscore_integrity.cascade.models import FollowEdge

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRAVERSAL = 1000


def normalize_address(address: str | None) -> str:
    """Lowercase and strip an address; None becomes an empty string."""
    if not isinstance(address, str):
        return ""
    return address.strip().lower()


class FollowGraph:
    """Directed graph of active follow edges.

    Attributes:
        max_traversal: Upper bound on wallets visited by a single walk.
    """

    def __init__(
        self,
        edges: Iterable[FollowEdge] | None = None,
        *,
        max_traversal: int = DEFAULT_MAX_TRAVERSAL,
    ) -> None:
        self.max_traversal = max_traversal
        self._leaders: dict[str, set[str]] = {}
        self._followers: dict[str, set[str]] = {}
        self._edges: dict[tuple[str, str], FollowEdge] = {}
        self._depth: dict[str, int] = {}

        for edge in edges or ():
            if edge.active:
                self.add_edge(edge)

    def __len__(self) -> int:
        return len(self._edges)

    # Writes

    def add_edge(self, edge: FollowEdge) -> None:
        """Add an active edge. Replaces any edge for the same pair."""
        follower = normalize_address(edge.follower)
        leader = normalize_address(edge.leader)
        self._edges[(follower, leader)] = edge
        self._leaders.setdefault(follower, set()).add(leader)
        self._followers.setdefault(leader, set()).add(follower)
        self._depth.clear()

    def remove_edge(self, follower: str, leader: str) -> FollowEdge | None:
        """Remove the edge for a pair and return it, if present."""
        pair = (normalize_address(follower), normalize_address(leader))
        edge = self._edges.pop(pair, None)
        if edge is None:
            return None

        self._discard(self._leaders, pair[0], pair[1])
        self._discard(self._followers, pair[1], pair[0])
        self._depth.clear()
        return edge

    def clear(self) -> None:
        """Drop every edge."""
        self._leaders.clear()
        self._followers.clear()
        self._edges.clear()
        self._depth.clear()

    @staticmethod
    def _discard(index: dict[str, set[str]], key: str, value: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(value)
        if not members:
            del index[key]

    # Reads

    def get_edge(self, follower: str, leader: str) -> FollowEdge | None:
        """Return the active edge for a pair, if any."""
        return self._edges.get((normalize_address(follower), normalize_address(leader)))

    def has_edge(self, follower: str, leader: str) -> bool:
        """Return True if ``follower`` actively follows ``leader``."""
        return self.get_edge(follower, leader) is not None

    def leaders_of(self, address: str) -> list[str]:
        """Wallets the address follows, sorted."""
        return sorted(self._leaders.get(normalize_address(address), ()))

    def followers_of(self, address: str) -> list[str]:
        """Wallets following the address, sorted."""
        return sorted(self._followers.get(normalize_address(address), ()))

    def copy_depth(self, address: str) -> int:
        """Hops from a wallet back to an original source.

        0 for a wallet that follows no one, otherwise one more than the
        deepest leader it follows.
        """
        start = normalize_address(address)
        cached = self._depth.get(start)
        if cached is not None:
            return cached
        if start not in self._leaders:
            return 0

        on_path: set[str] = set()
        visited = 0
        stack: list[tuple[str, bool]] = [(start, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                on_path.discard(node)
                leaders = self._leaders.get(node, ())
                self._depth[node] = 1 + max(
                    (self._depth.get(leader, 0) for leader in leaders), default=-1
                )
                continue
            if node in self._depth:
                continue

            visited += 1
            on_path.add(node)
            stack.append((node, True))
            if visited > self.max_traversal:
                logger.warning(
                    "Copy depth walk truncated: start=%s visited=%d",
                    start[:10],
                    visited,
                )
                continue
            for leader in self._leaders.get(node, ()):
                if leader in on_path:
                    logger.warning("Follow cycle at %s ignored", leader[:10])
                    continue
                if leader not in self._depth:
                    stack.append((leader, False))

        return self._depth.get(start, 0)

    def reaches(self, start: str, target: str) -> bool:
        """Return True if ``start`` transitively follows ``target``."""
        source = normalize_address(start)
        goal = normalize_address(target)
        seen = {source}
        frontier = [source]
        while frontier and len(seen) <= self.max_traversal:
            node = frontier.pop()
            for leader in self._leaders.get(node, ()):
                if leader == goal:
                    return True
                if leader not in seen:
                    seen.add(leader)
                    frontier.append(leader)
        return False

    def path_to_source(self, address: str) -> list[str]:
        """Walk from a wallet to its original source through its deepest leader.

        Ties between equally deep leaders resolve to the smallest address.

        Returns:
            Addresses from the wallet itself to the depth-0 source, inclusive.
        """
        current = normalize_address(address)
        path = [current]
        seen = {current}
        while len(path) <= self.max_traversal:
            leaders = [leader for leader in self._leaders.get(current, ()) if leader not in seen]
            if not leaders:
                break
            current = min(leaders, key=lambda leader: (-self.copy_depth(leader), leader))
            path.append(current)
            seen.add(current)
        return path
