from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from market_aggregator.clients.http_client import HttpClient
from market_aggregator.connectors.base import (
    ConnectorError,
    SourceConnector,
    complement,
    dict_rows,
    parse_dt_or_none,
    to_clean_str,
    to_float_or_none,
)
from market_aggregator.ingestion import DEFAULT_CONCURRENCY, ExpiryCache, bounded_map
from market_aggregator.models import RawMarket, Source

logger = logging.getLogger(__name__)

_LOOKUP_TIMEOUT = 8


class PredictConnector(SourceConnector):
    """predict.fun: markets carry no expiry of their own, it comes from the parent category."""

    source = Source.PREDICT

    def __init__(
        self,
        base_url: str,
        limit: int = 50,
        timeout: int = 15,
        concurrency: int = DEFAULT_CONCURRENCY,
        expiry_cache: Optional[ExpiryCache] = None,
        http: Optional[HttpClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.limit = max(1, int(limit))
        self.concurrency = concurrency
        self.expiry_cache = expiry_cache if expiry_cache is not None else ExpiryCache()
        self.http = http or HttpClient(timeout=timeout)

    def fetch_markets(self) -> List[RawMarket]:
        payload = self.http.get_json(
            f"{self.base_url}/v1/markets",
            params={"limit": self.limit, "includeStats": "true"},
        )
        if not isinstance(payload, dict) or not payload.get("success"):
            raise ConnectorError("API returned success=false")

        rows = dict_rows(payload.get("data"))
        active = [m for m in rows if m.get("tradingStatus") == "OPEN" and m.get("status") == "REGISTERED"]
        logger.info("predict markets listed | active=%s total=%s", len(active), len(rows))

        for slug in dict.fromkeys(to_clean_str(m.get("categorySlug")) for m in active):
            if slug:
                self.expiry_cache.get_or_load(slug, self._fetch_category_expiry)

        return bounded_map(self._to_raw_market, active, concurrency=self.concurrency)

    def _to_raw_market(self, market: Dict[str, Any]) -> RawMarket:
        market_id = to_clean_str(market.get("id"))
        yes_price, no_price = self._fetch_orderbook_midpoint(market_id)
        slug = to_clean_str(market.get("categorySlug"))
        expiry = self.expiry_cache.get_or_load(slug, self._fetch_category_expiry) if slug else None
        stats = market.get("stats") if isinstance(market.get("stats"), dict) else {}
        return RawMarket(
            source=self.source,
            native_id=market_id,
            title=to_clean_str(market.get("question") or market.get("title")),
            yes_price=yes_price,
            no_price=no_price,
            liquidity_usd=to_float_or_none(stats.get("totalLiquidityUsd")),
            expiry=expiry,
            status=to_clean_str(market.get("tradingStatus")),
        )

    def _fetch_orderbook_midpoint(self, market_id: str) -> Tuple[Optional[float], Optional[float]]:
        try:
            payload = self.http.get_json(
                f"{self.base_url}/v1/markets/{market_id}/orderbook",
                timeout=_LOOKUP_TIMEOUT,
            )
        except (requests.RequestException, ValueError) as exc:
            logger.debug("predict orderbook unavailable | market=%s error=%s", market_id, exc)
            return None, None
        book = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(book, dict):
            return None, None
        return midpoint_prices(_top_price(book.get("bids")), _top_price(book.get("asks")))

    def _fetch_category_expiry(self, slug: str) -> Optional[datetime]:
        try:
            payload = self.http.get_json(f"{self.base_url}/v1/categories/{slug}", timeout=_LOOKUP_TIMEOUT)
        except (requests.RequestException, ValueError) as exc:
            logger.debug("predict category unavailable | slug=%s error=%s", slug, exc)
            return None
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        return parse_dt_or_none(data.get("endsAt"))


def midpoint_prices(best_bid: Optional[float], best_ask: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
    if best_bid is not None and best_ask is not None:
        mid = round((best_bid + best_ask) / 2, 4)
        return mid, complement(mid)
    if best_bid is not None:
        return best_bid, complement(best_bid)
    if best_ask is not None:
        return best_ask, complement(best_ask)
    return None, None


def _top_price(levels: Any) -> Optional[float]:
    if not isinstance(levels, list) or not levels:
        return None
    top = levels[0]
    if isinstance(top, (list, tuple)) and top:
        return to_float_or_none(top[0])
    return None
