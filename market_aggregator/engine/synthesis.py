from __future__ import annotations

from typing import Callable, Optional, Sequence

from market_aggregator.models import BestQuote, MatchedGroup, Market

PRICE_DECIMALS = 4


def build_matched_group(members: Sequence[Market]) -> MatchedGroup:
    """Reduce one cross-source cluster to its aggregated view.

    ``members`` must already be in input order: every tie-break below (canonical
    title, cheapest side) resolves to the earliest member.
    """
    if len(members) < 2:
        raise ValueError("a matched group needs at least two members")

    canonical = members[0]
    for market in members[1:]:
        if len(market.title) > len(canonical.title):
            canonical = market

    expiries = sorted(m.expiry for m in members)
    return MatchedGroup(
        canonical_title=canonical.title,
        members=tuple(members),
        total_liquidity=sum(m.liquidity for m in members),
        weighted_yes=weighted_price(members, lambda m: m.yes_price),
        weighted_no=weighted_price(members, lambda m: m.no_price),
        # Upper middle for even counts.
        representative_expiry=expiries[len(expiries) // 2],
        best_yes=_cheapest(members, lambda m: m.yes_price),
        best_no=_cheapest(members, lambda m: m.no_price),
    )


def weighted_price(members: Sequence[Market], price_of: Callable[[Market], float]) -> Optional[float]:
    total = 0.0
    weighted = 0.0
    for m in members:
        total += m.liquidity
        weighted += price_of(m) * m.liquidity
    if total <= 0:
        return None
    return round(weighted / total, PRICE_DECIMALS)


def _cheapest(members: Sequence[Market], price_of: Callable[[Market], float]) -> BestQuote:
    best = members[0]
    for market in members[1:]:
        if price_of(market) < price_of(best):
            best = market
    return BestQuote(source=best.source, market_id=best.id, price=price_of(best))
