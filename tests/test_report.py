from __future__ import annotations

import unittest
from datetime import datetime, timezone

from market_aggregator.demo import demo_markets
from market_aggregator.engine.grouping import match_markets
from market_aggregator.models import FetchResult, Source
from market_aggregator.utils.report import (
    format_fetch_summary,
    format_match_report,
    format_price,
    format_usd,
    truncate_text,
)

ANCHOR = datetime(2030, 6, 15, tzinfo=timezone.utc)


class FormatHelpersTests(unittest.TestCase):
    def test_format_usd(self) -> None:
        self.assertEqual(format_usd(1_500_000), "$1.50M")
        self.assertEqual(format_usd(25_000), "$25.0K")
        self.assertEqual(format_usd(999), "$999")

    def test_format_price(self) -> None:
        self.assertEqual(format_price(0.5744), "0.57")
        self.assertEqual(format_price(None), "-")

    def test_truncate_text(self) -> None:
        self.assertEqual(truncate_text("  short  ", 20), "short")
        self.assertEqual(truncate_text("abcdefghij", 8), "abcde...")

    def test_fetch_summary(self) -> None:
        lines = format_fetch_summary(
            [
                FetchResult(source=Source.XO),
                FetchResult(source=Source.PREDICT, error="timeout"),
                FetchResult(source=Source.POLYMARKET, skipped=True, skip_reason="disabled"),
            ]
        )

        self.assertEqual(lines[0], "xo:          0 markets")
        self.assertTrue(lines[1].endswith("(error: timeout)"))
        self.assertTrue(lines[2].endswith("(disabled)"))


class MatchReportTests(unittest.TestCase):
    def test_demo_report(self) -> None:
        result = match_markets(demo_markets(anchor=ANCHOR))

        text = format_match_report(result.matched, result.unmatched, result.pair_log)

        self.assertIn("Group 1: Bitcoin to hit $90,000 by June 2026", text)
        self.assertIn("Group 2: Ethereum to hit $5,000 by September 2026", text)
        self.assertIn("Best Yes: xo @ 0.55", text)
        self.assertIn("Total liquidity: $25.0K", text)
        self.assertIn("[probable] Will SOL reach 500 by June 2026?", text)
        self.assertTrue(text.endswith("Summary: 2 groups | 5 grouped markets | 1 unmatched"))

    def test_no_matches(self) -> None:
        text = format_match_report([], [], [])
        self.assertIn("No cross-source matches.", text)
        self.assertTrue(text.endswith("Summary: 0 groups | 0 grouped markets | 0 unmatched"))


if __name__ == "__main__":
    unittest.main()
