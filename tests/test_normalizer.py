from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from market_aggregator.engine.normalizer import (
    DROP_EXPIRED,
    DROP_LOW_LIQUIDITY,
    DROP_MISSING_EXPIRY,
    DROP_MISSING_LIQUIDITY,
    DROP_MISSING_PRICE,
    DROP_PRICE_RANGE,
    drop_reason,
    expand_number,
    normalize_all,
    normalize_record,
    sanitize_title,
)
from market_aggregator.models import RawMarket, Source

NOW = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _raw(**overrides) -> RawMarket:
    row = {
        "source": Source.XO,
        "native_id": "123",
        "title": "Will BTC reach 90k by June 2030?",
        "yes_price": 0.55,
        "no_price": 0.45,
        "liquidity_usd": 8000.0,
        "expiry": NOW + timedelta(days=30),
        "status": "ACTIVE",
    }
    row.update(overrides)
    return RawMarket(**row)


class SanitizeTitleTests(unittest.TestCase):
    def test_phrasings_of_same_event_collapse(self) -> None:
        self.assertEqual(sanitize_title("Will BTC reach 90k by June 2026?"), "bitcoin 90000 june 2026")
        self.assertEqual(sanitize_title("Bitcoin to hit $90,000 by June 2026"), "bitcoin 90000 june 2026")

    def test_empty_title(self) -> None:
        self.assertEqual(sanitize_title(""), "")
        self.assertEqual(sanitize_title("Will the?"), "")

    def test_stop_words_dropped(self) -> None:
        self.assertEqual(sanitize_title("Will the Fed cut rates in March?"), "fed cut rates march")

    def test_currency_amounts_lose_symbol_and_grouping(self) -> None:
        self.assertEqual(sanitize_title("€1,250 or £3,000,000"), "1250 3000000")
        self.assertEqual(sanitize_title("90,000 ETH"), "90000 ethereum")

    def test_decimal_point_kept_sentence_dot_dropped(self) -> None:
        self.assertEqual(sanitize_title("Will CPI exceed 3.5%?"), "cpi 3.5")
        self.assertEqual(sanitize_title("Trump wins 2028."), "trump wins 2028")

    def test_tickers_expanded(self) -> None:
        self.assertEqual(sanitize_title("SOL vs ETH"), "solana vs ethereum")

    def test_shorthand_numbers(self) -> None:
        self.assertEqual(expand_number("2.5m"), "2500000")
        self.assertEqual(expand_number("1.5K"), "1500")
        self.assertEqual(expand_number("1.2345k"), "1234.5")
        self.assertEqual(expand_number("3b"), "3000000000")

    def test_non_shorthand_tokens_untouched(self) -> None:
        self.assertEqual(expand_number("500"), "500")
        self.assertEqual(expand_number("kbtc"), "kbtc")
        self.assertEqual(expand_number("10x"), "10x")


class NormalizeRecordTests(unittest.TestCase):
    def test_valid_record_becomes_market(self) -> None:
        market = normalize_record(_raw(), now=NOW)

        self.assertIsNotNone(market)
        self.assertEqual(market.id, "xo-123")
        self.assertEqual(market.liquidity, 8000.0)
        self.assertEqual(market.yes_price, 0.55)
        self.assertEqual(market.expiry.tzinfo, timezone.utc)

    def test_naive_expiry_read_as_utc(self) -> None:
        market = normalize_record(_raw(expiry=datetime(2030, 2, 1, 12, 0)), now=NOW)
        self.assertEqual(market.expiry, datetime(2030, 2, 1, 12, 0, tzinfo=timezone.utc))

    def test_drop_reasons(self) -> None:
        self.assertEqual(drop_reason(_raw(no_price=None), now=NOW), DROP_MISSING_PRICE)
        self.assertEqual(drop_reason(_raw(yes_price=1.2), now=NOW), DROP_PRICE_RANGE)
        self.assertEqual(drop_reason(_raw(liquidity_usd=None), now=NOW), DROP_MISSING_LIQUIDITY)
        self.assertEqual(drop_reason(_raw(liquidity_usd=499.99), now=NOW), DROP_LOW_LIQUIDITY)
        self.assertEqual(drop_reason(_raw(expiry=None), now=NOW), DROP_MISSING_EXPIRY)
        self.assertEqual(drop_reason(_raw(expiry=NOW), now=NOW), DROP_EXPIRED)
        self.assertIsNone(drop_reason(_raw(), now=NOW))

    def test_liquidity_floor_is_inclusive(self) -> None:
        self.assertIsNotNone(normalize_record(_raw(liquidity_usd=500.0), now=NOW))
        self.assertIsNone(normalize_record(_raw(liquidity_usd=500.0), now=NOW, min_liquidity_usd=1000.0))


class NormalizeAllTests(unittest.TestCase):
    def test_report_counts(self) -> None:
        raws = [
            _raw(native_id="a"),
            _raw(native_id="b", source=Source.PROBABLE),
            _raw(native_id="c", liquidity_usd=10.0),
            _raw(native_id="d", yes_price=None),
            _raw(native_id="e", source=Source.PROBABLE, expiry=NOW - timedelta(hours=1)),
        ]

        markets, report = normalize_all(raws, now=NOW)

        self.assertEqual([m.id for m in markets], ["xo-a", "probable-b"])
        self.assertEqual(report.total, 5)
        self.assertEqual(report.kept, 2)
        self.assertEqual(report.dropped_total, 3)
        self.assertEqual(
            report.to_dict()["dropped"],
            {DROP_LOW_LIQUIDITY: 1, DROP_MISSING_PRICE: 1, DROP_EXPIRED: 1},
        )
        self.assertEqual(report.to_dict()["raw_by_source"], {"xo": 3, "probable": 2})
        self.assertEqual(report.to_dict()["kept_by_source"], {"xo": 1, "probable": 1})


if __name__ == "__main__":
    unittest.main()
