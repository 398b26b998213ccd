from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from market_aggregator.config import Settings, get_settings
from market_aggregator.connectors.base import SourceConnector
from market_aggregator.connectors.polymarket import PolymarketConnector
from market_aggregator.connectors.predict import PredictConnector
from market_aggregator.connectors.probable import ProbableConnector
from market_aggregator.connectors.xo import XOConnector
from market_aggregator.demo import demo_markets
from market_aggregator.engine.grouping import MatchResult, match_markets
from market_aggregator.engine.normalizer import NormalizationReport, normalize_all
from market_aggregator.ingestion import ExpiryCache, fetch_all, flatten
from market_aggregator.models import FetchResult
from market_aggregator.storage.mongo import MongoStore, SyncReport
from market_aggregator.utils.logging import configure_logging
from market_aggregator.utils.report import format_fetch_summary, format_match_report

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    started_at: datetime
    fetched: List[FetchResult] = field(default_factory=list)
    normalization: NormalizationReport = field(default_factory=NormalizationReport)
    result: MatchResult = field(default_factory=MatchResult)
    sync: Optional[SyncReport] = None


def build_connectors(settings: Settings, expiry_cache: Optional[ExpiryCache] = None) -> List[SourceConnector]:
    timeout = settings.http_timeout_seconds
    connectors: List[SourceConnector] = []
    if settings.predict_enabled:
        connectors.append(
            PredictConnector(
                base_url=settings.predict_base_url,
                limit=settings.predict_limit,
                timeout=timeout,
                concurrency=settings.fetch_concurrency,
                expiry_cache=expiry_cache,
            )
        )
    if settings.probable_enabled:
        connectors.append(
            ProbableConnector(
                market_api_url=settings.probable_market_api_url,
                clob_api_url=settings.probable_clob_api_url,
                event_limit=settings.probable_event_limit,
                timeout=timeout,
                concurrency=settings.fetch_concurrency,
            )
        )
    if settings.xo_enabled:
        connectors.append(
            XOConnector(
                base_url=settings.xo_api_url,
                page_size=settings.xo_page_size,
                timeout=timeout,
            )
        )
    if settings.polymarket_enabled:
        connectors.append(
            PolymarketConnector(
                base_url=settings.polymarket_api_url,
                page_size=settings.polymarket_page_size,
                max_events=settings.polymarket_max_events,
                timeout=max(timeout, 20),
            )
        )
    return connectors


class AggregatorService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        connectors: Optional[List[SourceConnector]] = None,
        store: Optional[MongoStore] = None,
    ):
        self.settings = settings or get_settings()
        # Category expiries rarely change; the cache lives as long as the service.
        self.expiry_cache = ExpiryCache()
        self.connectors = connectors if connectors is not None else build_connectors(self.settings, self.expiry_cache)
        self._store = store

    @property
    def store(self) -> MongoStore:
        if self._store is None:
            self._store = MongoStore(self.settings.mongodb_uri, self.settings.mongodb_db)
        return self._store

    def run_cycle(self, dry_run: bool = False) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc))
        report.fetched = fetch_all(self.connectors)
        for line in format_fetch_summary(report.fetched):
            logger.info("Fetched %s", line)

        markets, report.normalization = normalize_all(
            flatten(report.fetched),
            now=report.started_at,
            min_liquidity_usd=self.settings.min_liquidity_usd,
        )
        if not markets:
            logger.info("No markets passed normalization")
            return report

        report.result = match_markets(
            markets,
            as_of=report.started_at,
            tolerance=timedelta(hours=self.settings.expiry_tolerance_hours),
            threshold=self.settings.similarity_threshold,
        )
        for pair in report.result.pair_log:
            logger.debug(
                "Pair | %s:%r ~ %s:%r score=%.4f",
                pair.source_a.value,
                pair.title_a,
                pair.source_b.value,
                pair.title_b,
                pair.score,
            )

        if dry_run:
            logger.info("Dry run mode: not syncing to MongoDB | %s", report.result.to_summary())
            return report

        report.sync = self.store.sync(markets, report.result.matched)
        if not report.sync.ok:
            logger.warning("Sync finished with errors | errors=%s", len(report.sync.errors))
        return report


def run_demo() -> str:
    result = match_markets(demo_markets())
    return format_match_report(result.matched, result.unmatched, result.pair_log)


def main() -> None:
    parser = argparse.ArgumentParser(description="Cross-venue prediction market aggregator")
    parser.add_argument("--once", action="store_true", help="Run a single fetch/match/sync cycle")
    parser.add_argument("--dry-run", action="store_true", help="Do not write to MongoDB")
    parser.add_argument("--demo", action="store_true", help="Match the built-in offline scenario and exit")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    if args.demo:
        print(run_demo())
        return

    service = AggregatorService(settings)

    if args.once:
        report = service.run_cycle(dry_run=args.dry_run)
        print(format_match_report(report.result.matched, report.result.unmatched, report.result.pair_log))
        return

    while True:
        start = time.time()
        try:
            report = service.run_cycle(dry_run=args.dry_run)
            logger.info("Cycle complete | %s", report.result.to_summary())
        except Exception as exc:
            logger.exception("Cycle failed | error=%s", exc)

        elapsed = time.time() - start
        sleep_for = max(1, settings.loop_interval_seconds - int(elapsed))
        time.sleep(sleep_for)


if __name__ == "__main__":
    main()
