from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from market_aggregator.engine.bucketing import EXPIRY_TOLERANCE, bucket_by_expiry, is_cross_source
from market_aggregator.engine.clustering import build_clusters, one_per_source
from market_aggregator.engine.pairing import (
    SIMILARITY_THRESHOLD,
    CandidatePair,
    PairRecord,
    Scorer,
    find_cross_source_pairs,
)
from market_aggregator.engine.synthesis import build_matched_group
from market_aggregator.models import MatchedGroup, Market, as_utc

logger = logging.getLogger(__name__)


class InvalidMarketError(ValueError):
    """A Market handed to the matcher breaks an invariant the Normalizer guarantees."""


@dataclass
class MatchResult:
    matched: List[MatchedGroup] = field(default_factory=list)
    unmatched: List[Market] = field(default_factory=list)
    pair_log: List[PairRecord] = field(default_factory=list)

    @property
    def member_count(self) -> int:
        return sum(len(g.members) for g in self.matched)

    def to_summary(self) -> Dict[str, int]:
        return {
            "groups": len(self.matched),
            "grouped_markets": self.member_count,
            "unmatched": len(self.unmatched),
            "pairs": len(self.pair_log),
        }


def match_markets(
    markets: Iterable[Market],
    *,
    as_of: Optional[datetime] = None,
    tolerance: timedelta = EXPIRY_TOLERANCE,
    threshold: float = SIMILARITY_THRESHOLD,
    scorer: Optional[Scorer] = None,
) -> MatchResult:
    """Partition markets into cross-source groups and unmatched singletons.

    Pure and deterministic for a given input order. Every input market ends up in
    exactly one group or in ``unmatched``. Pass ``as_of`` to also reject markets
    whose expiry is not after that instant.
    """
    markets = list(markets)
    validate_markets(markets, as_of=as_of)
    order = {m.id: idx for idx, m in enumerate(markets)}

    pairs: List[CandidatePair] = []
    buckets = bucket_by_expiry(markets, tolerance=tolerance)
    compared = 0
    for bucket in buckets:
        if len(bucket) < 2 or not is_cross_source(bucket):
            continue
        compared += 1
        pairs.extend(find_cross_source_pairs(bucket, threshold=threshold, scorer=scorer))

    groups: List[MatchedGroup] = []
    grouped_ids: set[str] = set()
    for cluster in build_clusters(pairs):
        kept, evicted = one_per_source(cluster, order)
        if evicted:
            logger.debug(
                "Same-source members left out of group | kept=%s evicted=%s",
                [m.id for m in kept],
                [m.id for m in evicted],
            )
        groups.append(build_matched_group(kept))
        grouped_ids.update(m.id for m in kept)

    groups.sort(key=lambda g: order[g.members[0].id])
    unmatched = [m for m in markets if m.id not in grouped_ids]

    result = MatchResult(
        matched=groups,
        unmatched=unmatched,
        pair_log=[p.to_record() for p in pairs],
    )
    logger.info(
        "Matching complete | markets=%s buckets=%s compared_buckets=%s pairs=%s groups=%s unmatched=%s",
        len(markets),
        len(buckets),
        compared,
        len(pairs),
        len(groups),
        len(unmatched),
    )
    return result


def validate_markets(markets: Iterable[Market], as_of: Optional[datetime] = None) -> None:
    cutoff = as_utc(as_of) if as_of else None
    seen: set[str] = set()
    for market in markets:
        market_id = getattr(market, "id", None)
        if not market_id:
            raise InvalidMarketError("market without id")
        if market_id in seen:
            raise InvalidMarketError(f"duplicate market id {market_id!r}")
        seen.add(market_id)

        for side in ("yes_price", "no_price"):
            price = getattr(market, side, None)
            if price is None or math.isnan(price) or not 0.0 <= price <= 1.0:
                raise InvalidMarketError(f"{market_id}: {side} must be within [0, 1], got {price!r}")

        liquidity = getattr(market, "liquidity", None)
        if liquidity is None or math.isnan(liquidity) or liquidity < 0:
            raise InvalidMarketError(f"{market_id}: liquidity must be non-negative, got {liquidity!r}")

        expiry = getattr(market, "expiry", None)
        if not isinstance(expiry, datetime):
            raise InvalidMarketError(f"{market_id}: expiry must be a datetime, got {expiry!r}")
        if cutoff is not None and as_utc(expiry) <= cutoff:
            raise InvalidMarketError(f"{market_id}: expiry {expiry.isoformat()} is not after {cutoff.isoformat()}")
