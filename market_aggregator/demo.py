"""Offline six-listing scenario: a BTC event on three venues, an ETH event on two, one solo SOL listing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from market_aggregator.models import Market, Source


def demo_markets(anchor: Optional[datetime] = None) -> List[Market]:
    base = anchor or datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=60)
    same_day = base + timedelta(hours=12)
    later = base + timedelta(days=78)

    def market(source: Source, native_id: str, title: str, yes: float, no: float, liquidity: float, expiry: datetime) -> Market:
        return Market(
            id=Market.make_id(source, native_id),
            source=source,
            native_id=native_id,
            title=title,
            yes_price=yes,
            no_price=no,
            liquidity=liquidity,
            expiry=expiry,
        )

    return [
        market(Source.PROBABLE, "m1", "Will BTC reach 90k by June 2026?", 0.6, 0.4, 5000, base),
        market(Source.XO, "m1", "Bitcoin to hit $90,000 by June 2026", 0.55, 0.45, 8000, same_day),
        market(Source.PREDICT, "m1", "Will BTC reach 90k by June 2026?", 0.58, 0.42, 12000, base),
        market(Source.PROBABLE, "m2", "Will ETH reach 5k by September 2026?", 0.35, 0.65, 3000, later),
        market(Source.XO, "m2", "Ethereum to hit $5,000 by September 2026", 0.3, 0.7, 6000, later),
        market(Source.PROBABLE, "m3", "Will SOL reach 500 by June 2026?", 0.2, 0.8, 2000, base),
    ]
