from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from rapidfuzz.distance import JaroWinkler

from market_aggregator.engine.normalizer import sanitize_title
from market_aggregator.models import Market, Source

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.88

Scorer = Callable[[str, str], float]


@dataclass(frozen=True)
class CandidatePair:
    a: Market
    b: Market
    score: float
    sanitized_a: str
    sanitized_b: str

    def to_record(self) -> "PairRecord":
        return PairRecord(
            market_id_a=self.a.id,
            market_id_b=self.b.id,
            title_a=self.a.title,
            title_b=self.b.title,
            source_a=self.a.source,
            source_b=self.b.source,
            sanitized_a=self.sanitized_a,
            sanitized_b=self.sanitized_b,
            score=self.score,
        )


@dataclass(frozen=True)
class PairRecord:
    market_id_a: str
    market_id_b: str
    title_a: str
    title_b: str
    source_a: Source
    source_b: Source
    sanitized_a: str
    sanitized_b: str
    score: float


def title_similarity(a: str, b: str) -> float:
    """Jaro-Winkler similarity in [0, 1] (prefix weight 0.1, boost above Jaro 0.7)."""
    if not a or not b:
        return 0.0
    return float(JaroWinkler.similarity(a, b))


def find_cross_source_pairs(
    bucket: Sequence[Market],
    threshold: float = SIMILARITY_THRESHOLD,
    scorer: Optional[Scorer] = None,
) -> List[CandidatePair]:
    score_fn = scorer or title_similarity
    sanitized: Dict[str, str] = {}
    for market in bucket:
        if market.id not in sanitized:
            sanitized[market.id] = sanitize_title(market.title)

    pairs: List[CandidatePair] = []
    for i, a in enumerate(bucket):
        for b in bucket[i + 1:]:
            # A venue's own listings are deduplicated upstream.
            if a.source == b.source:
                continue
            s_a = sanitized[a.id]
            s_b = sanitized[b.id]
            if not s_a or not s_b:
                continue
            score = score_fn(s_a, s_b)
            if score >= threshold:
                pairs.append(CandidatePair(a=a, b=b, score=score, sanitized_a=s_a, sanitized_b=s_b))

    logger.debug("Scored bucket | size=%s retained_pairs=%s", len(bucket), len(pairs))
    return pairs
