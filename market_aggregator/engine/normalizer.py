from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Tuple

from market_aggregator.models import Market, RawMarket, as_utc

logger = logging.getLogger(__name__)

MIN_LIQUIDITY_USD = 500.0

DROP_MISSING_PRICE = "missing_price"
DROP_PRICE_RANGE = "price_out_of_range"
DROP_MISSING_LIQUIDITY = "missing_liquidity"
DROP_LOW_LIQUIDITY = "low_liquidity"
DROP_MISSING_EXPIRY = "missing_expiry"
DROP_EXPIRED = "expired"


@dataclass
class NormalizationReport:
    total: int = 0
    kept: int = 0
    dropped: Counter = field(default_factory=Counter)
    raw_by_source: Counter = field(default_factory=Counter)
    kept_by_source: Counter = field(default_factory=Counter)

    @property
    def dropped_total(self) -> int:
        return self.total - self.kept

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "kept": self.kept,
            "dropped": dict(self.dropped),
            "raw_by_source": {s.value: n for s, n in self.raw_by_source.items()},
            "kept_by_source": {s.value: n for s, n in self.kept_by_source.items()},
        }


def drop_reason(
    raw: RawMarket,
    now: Optional[datetime] = None,
    min_liquidity_usd: float = MIN_LIQUIDITY_USD,
) -> Optional[str]:
    """Return why ``raw`` cannot become a Market, or None when it qualifies."""
    if raw.yes_price is None or raw.no_price is None:
        return DROP_MISSING_PRICE
    if not (0.0 <= raw.yes_price <= 1.0 and 0.0 <= raw.no_price <= 1.0):
        return DROP_PRICE_RANGE
    if raw.liquidity_usd is None:
        return DROP_MISSING_LIQUIDITY
    if raw.liquidity_usd < min_liquidity_usd:
        return DROP_LOW_LIQUIDITY
    if raw.expiry is None:
        return DROP_MISSING_EXPIRY
    current = as_utc(now) if now else datetime.now(timezone.utc)
    if as_utc(raw.expiry) <= current:
        return DROP_EXPIRED
    return None


def normalize_record(
    raw: RawMarket,
    now: Optional[datetime] = None,
    min_liquidity_usd: float = MIN_LIQUIDITY_USD,
) -> Optional[Market]:
    if drop_reason(raw, now=now, min_liquidity_usd=min_liquidity_usd) is not None:
        return None
    return Market(
        id=Market.make_id(raw.source, raw.native_id),
        source=raw.source,
        native_id=raw.native_id,
        title=raw.title,
        yes_price=raw.yes_price,
        no_price=raw.no_price,
        liquidity=raw.liquidity_usd,
        expiry=raw.expiry,
    )


def normalize_all(
    raws: Iterable[RawMarket],
    now: Optional[datetime] = None,
    min_liquidity_usd: float = MIN_LIQUIDITY_USD,
) -> Tuple[List[Market], NormalizationReport]:
    current = as_utc(now) if now else datetime.now(timezone.utc)
    report = NormalizationReport()
    markets: List[Market] = []
    for raw in raws:
        report.total += 1
        report.raw_by_source[raw.source] += 1
        reason = drop_reason(raw, now=current, min_liquidity_usd=min_liquidity_usd)
        if reason is not None:
            report.dropped[reason] += 1
            continue
        market = normalize_record(raw, now=current, min_liquidity_usd=min_liquidity_usd)
        markets.append(market)
        report.kept += 1
        report.kept_by_source[raw.source] += 1

    logger.info(
        "Normalized raw markets | total=%s kept=%s dropped=%s",
        report.total,
        report.kept,
        dict(report.dropped),
    )
    return markets, report


# Title sanitizer: similarity key only, never displayed.

STOP_WORDS = frozenset(
    {
        "will",
        "can",
        "touch",
        "reach",
        "get",
        "to",
        "at",
        "the",
        "a",
        "is",
        "be",
        "by",
        "on",
        "in",
        "of",
        "or",
        "and",
        "for",
        "before",
        "after",
        "above",
        "below",
        "hit",
        "win",
        "exceed",
    }
)

TICKER_EXPANSIONS = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "sol": "solana",
    "bnb": "binance",
    "xrp": "ripple",
    "doge": "dogecoin",
    "ada": "cardano",
    "dot": "polkadot",
    "avax": "avalanche",
    "matic": "polygon",
    "link": "chainlink",
    "uni": "uniswap",
    "ltc": "litecoin",
    "atom": "cosmos",
    "near": "near",
    "apt": "aptos",
    "arb": "arbitrum",
    "op": "optimism",
    "sui": "sui",
    "idr": "rupiah",
}

_MAGNITUDES = {
    "k": Decimal(1_000),
    "m": Decimal(1_000_000),
    "b": Decimal(1_000_000_000),
}

_CURRENCY_NUMBER = re.compile(r"[$€£]\s?(\d[\d,]*(?:\.\d+)?)")
_GROUPING_COMMA = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
_PUNCTUATION = re.compile(r"[^\w\s.]")
_STRAY_DOT = re.compile(r"(?<!\d)\.|\.(?!\d)")
_SHORTHAND_NUMBER = re.compile(r"^(\d+(?:\.\d+)?)([kmb])$", re.IGNORECASE)


def sanitize_title(title: str) -> str:
    cleaned = (title or "").lower()
    cleaned = _CURRENCY_NUMBER.sub(lambda m: m.group(1).replace(",", ""), cleaned)
    cleaned = _GROUPING_COMMA.sub("", cleaned)
    cleaned = _PUNCTUATION.sub(" ", cleaned)
    # A dot survives only as a decimal point inside a number.
    cleaned = _STRAY_DOT.sub(" ", cleaned)

    tokens = []
    for token in cleaned.split():
        if token in STOP_WORDS:
            continue
        token = TICKER_EXPANSIONS.get(token, token)
        tokens.append(expand_number(token))
    return " ".join(tokens).strip()


def expand_number(token: str) -> str:
    match = _SHORTHAND_NUMBER.match(token)
    if not match:
        return token
    try:
        value = Decimal(match.group(1)) * _MAGNITUDES[match.group(2).lower()]
    except InvalidOperation:
        return token
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")
