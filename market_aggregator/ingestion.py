from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from market_aggregator.connectors.base import SourceConnector
from market_aggregator.models import FetchResult, RawMarket

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 5


def bounded_map(fn: Callable[[T], R], items: Iterable[T], concurrency: int = DEFAULT_CONCURRENCY) -> List[R]:
    """Apply ``fn`` to every item with at most ``concurrency`` calls in flight; keeps input order."""
    rows = list(items)
    if not rows:
        return []
    workers = max(1, min(int(concurrency), len(rows)))
    if workers == 1:
        return [fn(item) for item in rows]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(fn, rows))


class ExpiryCache:
    """Thread-safe memo of expiry lookups keyed by a venue-side grouping key (e.g. category slug).

    Failed lookups are cached as None so a broken key is only requested once per cache.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Optional[datetime]] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def get_or_load(self, key: str, loader: Callable[[str], Optional[datetime]]) -> Optional[datetime]:
        with self._lock:
            if key in self._values:
                return self._values[key]
        value = loader(key)
        with self._lock:
            return self._values.setdefault(key, value)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()


def fetch_source(connector: SourceConnector) -> FetchResult:
    try:
        markets = connector.fetch_markets()
    except Exception as exc:
        logger.warning("Connector failed | source=%s error=%s", connector.source.value, exc)
        return FetchResult(source=connector.source, markets=[], error=str(exc) or type(exc).__name__)
    logger.info("Connector done | source=%s markets=%s", connector.source.value, len(markets))
    return FetchResult(source=connector.source, markets=markets)


def fetch_all(connectors: Sequence[SourceConnector], max_workers: Optional[int] = None) -> List[FetchResult]:
    """Run every connector concurrently; one source failing never aborts the others."""
    if not connectors:
        return []
    workers = max_workers or len(connectors)
    return bounded_map(fetch_source, connectors, concurrency=workers)


def flatten(results: Iterable[FetchResult]) -> List[RawMarket]:
    rows: List[RawMarket] = []
    for result in results:
        rows.extend(result.markets)
    return rows
