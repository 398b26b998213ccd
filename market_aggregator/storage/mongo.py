from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from market_aggregator.models import MatchedGroup, Market

logger = logging.getLogger(__name__)

BATCH_SIZE = 50


@dataclass
class SyncReport:
    markets_upserted: int = 0
    groups_upserted: int = 0
    links: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class MongoStore:
    def __init__(
        self,
        uri: str = "",
        db_name: str = "",
        markets_col: Optional[Collection] = None,
        groups_col: Optional[Collection] = None,
    ):
        self.client = None
        if markets_col is None or groups_col is None:
            # Ensure datetimes read from Mongo are timezone-aware (UTC).
            self.client = MongoClient(uri, tz_aware=True)
            db = self.client[db_name]
            markets_col = markets_col if markets_col is not None else db["raw_markets"]
            groups_col = groups_col if groups_col is not None else db["aggregated_markets"]
        self.markets_col = markets_col
        self.groups_col = groups_col
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        self.markets_col.create_index(
            [("source", ASCENDING), ("native_id", ASCENDING)],
            unique=True,
            name="raw_markets_source_native_id_unique",
        )
        self.markets_col.create_index("expiry")
        self.groups_col.create_index(
            [("canonical_title", ASCENDING)],
            unique=True,
            name="aggregated_markets_canonical_title_unique",
        )
        self.groups_col.create_index("member_ids")

    def upsert_markets(self, markets: Sequence[Market], now: Optional[datetime] = None) -> SyncReport:
        stamp = now or datetime.now(timezone.utc)
        report = SyncReport()
        for number, batch in enumerate(_batches(markets), start=1):
            ops = [
                UpdateOne(
                    {"source": m.source.value, "native_id": m.native_id},
                    {"$set": market_document(m, stamp)},
                    upsert=True,
                )
                for m in batch
            ]
            try:
                self.markets_col.bulk_write(ops, ordered=False)
            except PyMongoError as exc:
                report.errors.append(f"markets batch {number}: {exc}")
                logger.warning("Market batch upsert failed | batch=%s error=%s", number, exc)
                continue
            report.markets_upserted += len(batch)
        return report

    def upsert_groups(self, groups: Sequence[MatchedGroup], now: Optional[datetime] = None) -> SyncReport:
        stamp = now or datetime.now(timezone.utc)
        report = SyncReport()
        for number, batch in enumerate(_batches(groups), start=1):
            ops = [
                UpdateOne(
                    {"canonical_title": g.canonical_title},
                    {"$set": group_document(g, stamp)},
                    upsert=True,
                )
                for g in batch
            ]
            try:
                self.groups_col.bulk_write(ops, ordered=False)
            except PyMongoError as exc:
                report.errors.append(f"groups batch {number}: {exc}")
                logger.warning("Group batch upsert failed | batch=%s error=%s", number, exc)
                continue
            report.groups_upserted += len(batch)
            report.links += sum(len(g.members) for g in batch)
        return report

    def sync(self, markets: Sequence[Market], groups: Sequence[MatchedGroup]) -> SyncReport:
        now = datetime.now(timezone.utc)
        market_report = self.upsert_markets(markets, now=now)
        logger.info(
            "Raw markets synced | upserted=%s errors=%s",
            market_report.markets_upserted,
            len(market_report.errors),
        )
        if not groups:
            logger.info("No matched groups to upsert")
            return market_report

        group_report = self.upsert_groups(groups, now=now)
        logger.info(
            "Aggregated groups synced | upserted=%s links=%s errors=%s",
            group_report.groups_upserted,
            group_report.links,
            len(group_report.errors),
        )
        return SyncReport(
            markets_upserted=market_report.markets_upserted,
            groups_upserted=group_report.groups_upserted,
            links=group_report.links,
            errors=market_report.errors + group_report.errors,
        )


def market_document(market: Market, updated_at: datetime) -> Dict[str, Any]:
    return {
        "market_id": market.id,
        "source": market.source.value,
        "native_id": market.native_id,
        "title": market.title,
        "yes_price": market.yes_price,
        "no_price": market.no_price,
        "liquidity_usd": market.liquidity,
        "expiry": market.expiry,
        "status": "ACTIVE",
        "updated_at": updated_at,
    }


def group_document(group: MatchedGroup, updated_at: datetime) -> Dict[str, Any]:
    return {
        "canonical_title": group.canonical_title,
        "total_liquidity": group.total_liquidity,
        "weighted_yes_price": group.weighted_yes,
        "weighted_no_price": group.weighted_no,
        "expiry": group.representative_expiry,
        "platform_count": len(group.members),
        "member_ids": group.member_ids,
        "platforms": [
            {
                "platform": m.source.value,
                "market_id": m.id,
                "native_id": m.native_id,
                "yes_price": m.yes_price,
                "no_price": m.no_price,
                "liquidity": m.liquidity,
            }
            for m in group.members
        ],
        "best_yes": {"platform": group.best_yes.source.value, "price": group.best_yes.price},
        "best_no": {"platform": group.best_no.source.value, "price": group.best_no.price},
        "updated_at": updated_at,
    }


def _batches(rows: Sequence[Any], size: int = BATCH_SIZE) -> List[Sequence[Any]]:
    return [rows[i : i + size] for i in range(0, len(rows), size)]
