from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Source(str, Enum):
    PREDICT = "predict"
    PROBABLE = "probable"
    XO = "xo"
    POLYMARKET = "polymarket"


class RawMarket(BaseModel):
    source: Source
    native_id: str
    title: str
    yes_price: Optional[float] = None
    no_price: Optional[float] = None
    liquidity_usd: Optional[float] = None
    expiry: Optional[datetime] = None
    status: str = ""


class Market(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source: Source
    native_id: str
    title: str
    yes_price: float = Field(ge=0.0, le=1.0)
    no_price: float = Field(ge=0.0, le=1.0)
    liquidity: float = Field(ge=0.0)
    expiry: datetime

    @field_validator("expiry")
    @classmethod
    def _expiry_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @staticmethod
    def make_id(source: Source, native_id: str) -> str:
        return f"{Source(source).value}-{native_id}"


class BestQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: Source
    market_id: str
    price: float


class MatchedGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    canonical_title: str
    members: Tuple[Market, ...]
    total_liquidity: float
    weighted_yes: Optional[float] = None
    weighted_no: Optional[float] = None
    representative_expiry: datetime
    best_yes: BestQuote
    best_no: BestQuote

    @property
    def sources(self) -> List[Source]:
        return [m.source for m in self.members]

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]


class FetchResult(BaseModel):
    source: Source
    markets: List[RawMarket] = Field(default_factory=list)
    skipped: bool = False
    skip_reason: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
