from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest import mock

from market_aggregator.engine import pairing
from market_aggregator.engine.pairing import find_cross_source_pairs, title_similarity
from market_aggregator.models import Market, Source

EXPIRY = datetime(2030, 6, 30, tzinfo=timezone.utc)


def _market(source: Source, native_id: str, title: str) -> Market:
    return Market(
        id=Market.make_id(source, native_id),
        source=source,
        native_id=native_id,
        title=title,
        yes_price=0.5,
        no_price=0.5,
        liquidity=1000.0,
        expiry=EXPIRY,
    )


class TitleSimilarityTests(unittest.TestCase):
    def test_bounds(self) -> None:
        self.assertEqual(title_similarity("abc", "abc"), 1.0)
        self.assertEqual(title_similarity("", "abc"), 0.0)
        self.assertEqual(title_similarity("abc", ""), 0.0)

    def test_prefix_boost(self) -> None:
        self.assertAlmostEqual(title_similarity("martha", "marhta"), 0.9611, places=4)


class FindCrossSourcePairsTests(unittest.TestCase):
    def test_equivalent_titles_pair_across_sources(self) -> None:
        bucket = [
            _market(Source.PROBABLE, "m1", "Will BTC reach 90k by June 2026?"),
            _market(Source.XO, "m1", "Bitcoin to hit $90,000 by June 2026"),
        ]

        pairs = find_cross_source_pairs(bucket)

        self.assertEqual(len(pairs), 1)
        self.assertEqual(pairs[0].score, 1.0)
        self.assertEqual(pairs[0].sanitized_a, "bitcoin 90000 june 2026")
        record = pairs[0].to_record()
        self.assertEqual(record.market_id_a, "probable-m1")
        self.assertEqual(record.market_id_b, "xo-m1")
        self.assertEqual(record.source_b, Source.XO)
        self.assertEqual(record.title_b, "Bitcoin to hit $90,000 by June 2026")

    def test_same_source_never_compared(self) -> None:
        bucket = [
            _market(Source.XO, "a", "Bitcoin to hit $90,000 by June 2026"),
            _market(Source.XO, "b", "Bitcoin to hit $90,000 by June 2026"),
        ]
        scorer = mock.Mock(return_value=1.0)

        self.assertEqual(find_cross_source_pairs(bucket, scorer=scorer), [])
        scorer.assert_not_called()

    def test_threshold_is_inclusive(self) -> None:
        bucket = [_market(Source.PREDICT, "a", "alpha"), _market(Source.XO, "b", "beta")]

        kept = find_cross_source_pairs(bucket, scorer=lambda a, b: 0.88)
        dropped = find_cross_source_pairs(bucket, scorer=lambda a, b: 0.8799)

        self.assertEqual(len(kept), 1)
        self.assertEqual(dropped, [])

    def test_scorer_sees_sanitized_titles(self) -> None:
        bucket = [
            _market(Source.PREDICT, "a", "Will ETH reach 5k by September 2026?"),
            _market(Source.XO, "b", "Ethereum to hit $5,000 by September 2026"),
        ]
        scorer = mock.Mock(return_value=0.0)

        find_cross_source_pairs(bucket, scorer=scorer)

        scorer.assert_called_once_with("ethereum 5000 september 2026", "ethereum 5000 september 2026")

    def test_each_title_sanitized_once(self) -> None:
        bucket = [
            _market(Source.PREDICT, "a", "alpha one"),
            _market(Source.XO, "b", "alpha two"),
            _market(Source.PROBABLE, "c", "alpha three"),
        ]
        with mock.patch.object(pairing, "sanitize_title", wraps=pairing.sanitize_title) as sanitize:
            find_cross_source_pairs(bucket, scorer=lambda a, b: 0.0)

        self.assertEqual(sanitize.call_count, 3)

    def test_empty_sanitized_titles_never_pair(self) -> None:
        bucket = [_market(Source.PREDICT, "a", "Will the?"), _market(Source.XO, "b", "To be?")]
        self.assertEqual(find_cross_source_pairs(bucket, scorer=lambda a, b: 1.0), [])


if __name__ == "__main__":
    unittest.main()
