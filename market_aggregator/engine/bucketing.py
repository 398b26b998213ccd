from __future__ import annotations

from datetime import timedelta
from typing import List, Sequence

from market_aggregator.models import Market

EXPIRY_TOLERANCE = timedelta(hours=24)


def bucket_by_expiry(markets: Sequence[Market], tolerance: timedelta = EXPIRY_TOLERANCE) -> List[List[Market]]:
    """Partition markets into expiry windows anchored on each bucket's earliest member.

    A market joins the open bucket while its expiry is within ``tolerance`` of the
    bucket's first market; the window does not slide with later members, so drift
    cannot chain across many days. ``sorted`` is stable, which keeps input order
    among equal expiries.
    """
    ordered = sorted(markets, key=lambda m: m.expiry)

    buckets: List[List[Market]] = []
    current: List[Market] = []
    for market in ordered:
        if not current or market.expiry - current[0].expiry <= tolerance:
            current.append(market)
            continue
        buckets.append(current)
        current = [market]
    if current:
        buckets.append(current)
    return buckets


def is_cross_source(bucket: Sequence[Market]) -> bool:
    return len({m.source for m in bucket}) >= 2
