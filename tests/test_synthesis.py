from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from market_aggregator.engine.synthesis import build_matched_group, weighted_price
from market_aggregator.models import Market, Source

BASE = datetime(2030, 6, 30, tzinfo=timezone.utc)


def _market(
    source: Source,
    title: str,
    yes: float,
    liquidity: float,
    hours: float = 0,
    no: float | None = None,
) -> Market:
    return Market(
        id=Market.make_id(source, "m1"),
        source=source,
        native_id="m1",
        title=title,
        yes_price=yes,
        no_price=round(1 - yes, 4) if no is None else no,
        liquidity=liquidity,
        expiry=BASE + timedelta(hours=hours),
    )


class BuildMatchedGroupTests(unittest.TestCase):
    def setUp(self) -> None:
        self.members = [
            _market(Source.PROBABLE, "Will BTC reach 90k by June 2026?", 0.6, 5000, no=0.4),
            _market(Source.XO, "Bitcoin to hit $90,000 by June 2026", 0.55, 8000, hours=12, no=0.45),
            _market(Source.PREDICT, "Will BTC reach 90k by June 2026?", 0.58, 12000, no=0.42),
        ]

    def test_liquidity_weighted_prices(self) -> None:
        group = build_matched_group(self.members)

        expected_yes = round((5000 * 0.6 + 8000 * 0.55 + 12000 * 0.58) / 25000, 4)
        self.assertEqual(group.weighted_yes, expected_yes)
        self.assertAlmostEqual(group.weighted_yes, 0.5744, places=4)
        self.assertAlmostEqual(group.weighted_no, 0.4256, places=4)
        self.assertEqual(group.total_liquidity, 25000)

    def test_best_prices_are_lowest(self) -> None:
        group = build_matched_group(self.members)

        self.assertEqual(group.best_yes.source, Source.XO)
        self.assertEqual(group.best_yes.price, 0.55)
        self.assertEqual(group.best_yes.market_id, "xo-m1")
        self.assertEqual(group.best_no.source, Source.PROBABLE)
        self.assertEqual(group.best_no.price, 0.4)

    def test_canonical_title_is_longest(self) -> None:
        group = build_matched_group(self.members)
        self.assertEqual(group.canonical_title, "Bitcoin to hit $90,000 by June 2026")

    def test_ties_resolve_to_first_member(self) -> None:
        members = [
            _market(Source.PREDICT, "abcd", 0.5, 1000),
            _market(Source.XO, "wxyz", 0.5, 1000),
        ]
        group = build_matched_group(members)

        self.assertEqual(group.canonical_title, "abcd")
        self.assertEqual(group.best_yes.source, Source.PREDICT)
        self.assertEqual(group.best_no.source, Source.PREDICT)

    def test_members_and_sources_in_given_order(self) -> None:
        group = build_matched_group(self.members)

        self.assertEqual(group.member_ids, ["probable-m1", "xo-m1", "predict-m1"])
        self.assertEqual(group.sources, [Source.PROBABLE, Source.XO, Source.PREDICT])

    def test_median_expiry(self) -> None:
        odd = build_matched_group(self.members)
        self.assertEqual(odd.representative_expiry, BASE)

        even = build_matched_group(
            [
                _market(Source.PREDICT, "a", 0.5, 1000, hours=0),
                _market(Source.XO, "b", 0.5, 1000, hours=10),
            ]
        )
        self.assertEqual(even.representative_expiry, BASE + timedelta(hours=10))

        four = build_matched_group(
            [
                _market(Source.PREDICT, "a", 0.5, 1000, hours=6),
                _market(Source.XO, "b", 0.5, 1000, hours=0),
                _market(Source.PROBABLE, "c", 0.5, 1000, hours=18),
                _market(Source.POLYMARKET, "d", 0.5, 1000, hours=12),
            ]
        )
        self.assertEqual(four.representative_expiry, BASE + timedelta(hours=12))

    def test_zero_liquidity_has_no_weighted_price(self) -> None:
        group = build_matched_group(
            [
                _market(Source.PREDICT, "a", 0.4, 0),
                _market(Source.XO, "b", 0.6, 0),
            ]
        )

        self.assertIsNone(group.weighted_yes)
        self.assertIsNone(group.weighted_no)
        self.assertEqual(group.best_yes.price, 0.4)

    def test_needs_two_members(self) -> None:
        with self.assertRaises(ValueError):
            build_matched_group(self.members[:1])


class WeightedPriceTests(unittest.TestCase):
    def test_rounds_to_four_places(self) -> None:
        members = [
            _market(Source.PREDICT, "a", 0.1, 1),
            _market(Source.XO, "b", 0.2, 2),
        ]
        self.assertEqual(weighted_price(members, lambda m: m.yes_price), 0.1667)


if __name__ == "__main__":
    unittest.main()
