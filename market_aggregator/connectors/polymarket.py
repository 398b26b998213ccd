from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from market_aggregator.clients.http_client import HttpClient
from market_aggregator.connectors.base import (
    SourceConnector,
    dict_rows,
    parse_dt_or_none,
    parse_json_list,
    to_bool,
    to_clean_str,
    to_float_or_none,
)
from market_aggregator.models import RawMarket, Source

logger = logging.getLogger(__name__)


class PolymarketConnector(SourceConnector):
    source = Source.POLYMARKET

    def __init__(
        self,
        base_url: str,
        page_size: int = 100,
        max_events: int = 500,
        timeout: int = 20,
        http: Optional[HttpClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, int(page_size))
        # The venue lists tens of thousands of markets; only the most liquid events are worth matching.
        self.max_events = max(self.page_size, int(max_events))
        self.http = http or HttpClient(timeout=timeout)

    def fetch_markets(self) -> List[RawMarket]:
        markets: List[RawMarket] = []
        offset = 0
        while True:
            payload = self.http.get_json(
                f"{self.base_url}/events",
                params={
                    "active": "true",
                    "closed": "false",
                    "limit": self.page_size,
                    "offset": offset,
                    "order": "liquidity",
                    "ascending": "false",
                },
            )
            events = dict_rows(payload)
            if not events:
                break

            for event in events:
                event_liquidity = to_float_or_none(event.get("liquidity"))
                for market in dict_rows(event.get("markets")):
                    if to_bool(market.get("active")) is False or to_bool(market.get("closed")) is True:
                        continue
                    markets.append(_to_raw_market(market, event_liquidity))

            logger.debug("polymarket page fetched | offset=%s events=%s markets=%s", offset, len(events), len(markets))
            if len(events) < self.page_size or offset + self.page_size >= self.max_events:
                break
            offset += self.page_size

        now = datetime.now(timezone.utc)
        active = [m for m in markets if m.expiry is None or m.expiry > now]
        logger.info("polymarket markets listed | active=%s total=%s", len(active), len(markets))
        return active


def parse_outcome_prices(raw: Any) -> Tuple[Optional[float], Optional[float]]:
    values = parse_json_list(raw)
    if len(values) < 2:
        return None, None
    yes = to_float_or_none(values[0])
    no = to_float_or_none(values[1])
    if yes is None or no is None:
        return None, None
    return round(yes, 4), round(no, 4)


def _to_raw_market(market: Dict[str, Any], event_liquidity: Optional[float]) -> RawMarket:
    yes_price, no_price = parse_outcome_prices(market.get("outcomePrices"))
    liquidity = to_float_or_none(market.get("liquidity"))
    if liquidity is None:
        liquidity = to_float_or_none(market.get("liquidityNum"))
    if liquidity is None:
        liquidity = event_liquidity
    return RawMarket(
        source=Source.POLYMARKET,
        native_id=to_clean_str(market.get("conditionId") or market.get("id")),
        title=to_clean_str(market.get("question")),
        yes_price=yes_price,
        no_price=no_price,
        liquidity_usd=liquidity,
        expiry=parse_dt_or_none(market.get("endDateIso") or market.get("endDate")),
        status="ACTIVE",
    )
