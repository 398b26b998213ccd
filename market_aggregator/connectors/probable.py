from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from market_aggregator.clients.http_client import HttpClient
from market_aggregator.connectors.base import (
    SourceConnector,
    dict_rows,
    parse_dt_or_none,
    to_bool,
    to_clean_str,
    to_float_or_none,
)
from market_aggregator.ingestion import DEFAULT_CONCURRENCY, bounded_map
from market_aggregator.models import RawMarket, Source

logger = logging.getLogger(__name__)

_MIDPOINT_TIMEOUT = 5


class ProbableConnector(SourceConnector):
    source = Source.PROBABLE

    def __init__(
        self,
        market_api_url: str,
        clob_api_url: str,
        event_limit: int = 20,
        timeout: int = 15,
        concurrency: int = DEFAULT_CONCURRENCY,
        http: Optional[HttpClient] = None,
    ):
        self.market_api_url = market_api_url.rstrip("/")
        self.clob_api_url = clob_api_url.rstrip("/")
        self.event_limit = max(1, int(event_limit))
        self.concurrency = concurrency
        self.http = http or HttpClient(timeout=timeout)

    def fetch_markets(self) -> List[RawMarket]:
        payload = self.http.get_json(
            f"{self.market_api_url}/events",
            params={"limit": self.event_limit, "active": "true"},
        )
        events = dict_rows(payload)
        now = datetime.now(timezone.utc)
        active: List[Dict[str, Any]] = []
        for event in events:
            for market in dict_rows(event.get("markets")):
                if _is_tradeable(market, now):
                    active.append(market)

        logger.info("probable markets listed | active=%s events=%s", len(active), len(events))
        return bounded_map(self._to_raw_market, active, concurrency=self.concurrency)

    def _to_raw_market(self, market: Dict[str, Any]) -> RawMarket:
        tokens = dict_rows(market.get("tokens"))
        yes_token = _token_for(tokens, "Yes")
        no_token = _token_for(tokens, "No")
        liquidity = market.get("liquidity")
        return RawMarket(
            source=self.source,
            native_id=to_clean_str(market.get("id")),
            title=to_clean_str(market.get("question")),
            yes_price=self._fetch_midpoint(yes_token) if yes_token else None,
            no_price=self._fetch_midpoint(no_token) if no_token else None,
            liquidity_usd=to_float_or_none(liquidity) if liquidity else None,
            expiry=parse_dt_or_none(market.get("endDate")),
            status=_status_label(market),
        )

    def _fetch_midpoint(self, token_id: str) -> Optional[float]:
        try:
            payload = self.http.get_json(
                f"{self.clob_api_url}/midpoint",
                params={"token_id": token_id},
                timeout=_MIDPOINT_TIMEOUT,
            )
        except (requests.RequestException, ValueError) as exc:
            logger.debug("probable midpoint unavailable | token=%s error=%s", token_id, exc)
            return None
        if not isinstance(payload, dict) or not payload.get("mid"):
            return None
        return to_float_or_none(payload.get("mid"))


def _is_tradeable(market: Dict[str, Any], now: datetime) -> bool:
    if to_bool(market.get("active")) is not True:
        return False
    for flag in ("closed", "archived", "resolved"):
        if to_bool(market.get(flag)) is True:
            return False
    end = parse_dt_or_none(market.get("endDate"))
    if end is not None and end <= now:
        return False
    return True


def _token_for(tokens: List[Dict[str, Any]], outcome: str) -> str:
    for token in tokens:
        if to_clean_str(token.get("outcome")) == outcome:
            return to_clean_str(token.get("token_id"))
    return ""


def _status_label(market: Dict[str, Any]) -> str:
    if to_bool(market.get("active")):
        return "ACTIVE"
    if to_bool(market.get("closed")):
        return "CLOSED"
    return "UNKNOWN"
