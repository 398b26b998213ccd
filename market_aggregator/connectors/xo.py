from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from market_aggregator.clients.http_client import HttpClient
from market_aggregator.connectors.base import (
    SourceConnector,
    complement,
    dict_rows,
    parse_dt_or_none,
    to_clean_str,
    to_float_or_none,
)
from market_aggregator.models import RawMarket, Source

logger = logging.getLogger(__name__)

WEI = 1e18
EXCLUDED_STATUSES = "PENDING,UPDATE_REQUIRED,CANCELLED,RESOLVED"


class XOConnector(SourceConnector):
    """XO Market: prices arrive as 18-decimal fixed point strings."""

    source = Source.XO

    def __init__(
        self,
        base_url: str,
        page_size: int = 50,
        max_pages: int = 200,
        timeout: int = 15,
        http: Optional[HttpClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, int(page_size))
        self.max_pages = max(1, int(max_pages))
        self.http = http or HttpClient(timeout=timeout)

    def fetch_markets(self) -> List[RawMarket]:
        rows: List[Dict[str, Any]] = []
        page = 1
        while page <= self.max_pages:
            payload = self.http.get_json(
                f"{self.base_url}/markets",
                params={
                    "page": page,
                    "take": self.page_size,
                    "sortBy": "liquidity",
                    "sortOrder": "DESC",
                    "excludedStatuses": EXCLUDED_STATUSES,
                },
            )
            if not isinstance(payload, dict):
                break
            batch = dict_rows(payload.get("data"))
            rows.extend(batch)
            meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
            logger.debug("xo page fetched | page=%s rows=%s", page, len(batch))
            if not meta.get("hasNextPage") or not batch:
                break
            page += 1

        now = datetime.now(timezone.utc)
        markets = [_to_raw_market(m) for m in rows if _is_active(m, now)]
        logger.info("xo markets listed | active=%s fetched=%s", len(markets), len(rows))
        return markets


def wei_to_decimal(value: Any) -> Optional[float]:
    parsed = to_float_or_none(value)
    if parsed is None:
        return None
    return round(parsed / WEI, 4)


def outcome_prices(market: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    outcomes = dict_rows(market.get("outcomes"))
    if market.get("type") == "BINARY" and len(outcomes) >= 2:
        ordered = sorted(outcomes, key=lambda o: to_float_or_none(o.get("index")) or 0.0)
        return wei_to_decimal(ordered[0].get("currentPrice")), wei_to_decimal(ordered[1].get("currentPrice"))
    if outcomes:
        # Multi-outcome: the leading outcome stands in for "yes".
        yes = max(wei_to_decimal(o.get("currentPrice")) or 0.0 for o in outcomes)
        return yes, complement(yes)
    return None, None


def _to_raw_market(market: Dict[str, Any]) -> RawMarket:
    yes_price, no_price = outcome_prices(market)
    volume = market.get("totalVolumeInUSD")
    return RawMarket(
        source=Source.XO,
        native_id=to_clean_str(market.get("id")),
        title=to_clean_str(market.get("title")),
        yes_price=yes_price,
        no_price=no_price,
        liquidity_usd=to_float_or_none(volume) if volume else None,
        expiry=parse_dt_or_none(market.get("expiresAt")),
        status=to_clean_str(market.get("status")),
    )


def _is_active(market: Dict[str, Any], now: datetime) -> bool:
    if market.get("status") != "ACTIVE":
        return False
    expires = parse_dt_or_none(market.get("expiresAt"))
    return expires is None or expires > now
