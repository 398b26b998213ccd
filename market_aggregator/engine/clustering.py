from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from market_aggregator.engine.pairing import CandidatePair
from market_aggregator.models import Market, Source


class DisjointSet:
    """Union-find over string ids with path compression and union by rank.

    Ids are registered lazily on first ``find``; ``union`` of two ids already in
    the same set is a no-op, so repeated or reflexive pairs are harmless.
    """

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}
        self._rank: Dict[str, int] = {}

    def __contains__(self, item: str) -> bool:
        return item in self._parent

    def __len__(self) -> int:
        return len(self._parent)

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: str) -> str:
        self.add(item)
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            next_item = self._parent[item]
            self._parent[item] = root
            item = next_item
        return root

    def union(self, a: str, b: str) -> bool:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return True

    def components(self) -> List[List[str]]:
        """Connected components; both the components and their members keep first-seen order."""
        by_root: Dict[str, List[str]] = {}
        for item in self._parent:
            by_root.setdefault(self.find(item), []).append(item)
        return list(by_root.values())


def build_clusters(pairs: Iterable[CandidatePair]) -> List[List[Market]]:
    """Merge transitively linked markets and keep clusters that span two or more sources.

    Linking is transitive: A~B and B~C put A and C together even when A~C scored
    below threshold.
    """
    dsu = DisjointSet()
    markets: Dict[str, Market] = {}
    for pair in pairs:
        markets.setdefault(pair.a.id, pair.a)
        markets.setdefault(pair.b.id, pair.b)
        dsu.union(pair.a.id, pair.b.id)

    clusters: List[List[Market]] = []
    for member_ids in dsu.components():
        members = [markets[mid] for mid in member_ids]
        if len(members) < 2 or len({m.source for m in members}) < 2:
            continue
        clusters.append(members)
    return clusters


def one_per_source(cluster: Sequence[Market], order: Dict[str, int]) -> Tuple[List[Market], List[Market]]:
    """Split a cluster into (kept, evicted) so that each source appears once.

    Per source the most liquid market stays; ties go to the earlier input position.
    Kept members are returned in input order.
    """
    members = sorted(cluster, key=lambda m: order[m.id])
    best: Dict[Source, Market] = {}
    for market in members:
        incumbent = best.get(market.source)
        if incumbent is None or market.liquidity > incumbent.liquidity:
            best[market.source] = market

    kept_ids = {m.id for m in best.values()}
    kept = [m for m in members if m.id in kept_ids]
    evicted = [m for m in members if m.id not in kept_ids]
    return kept, evicted
