from __future__ import annotations

from typing import Iterable, List

from market_aggregator.engine.pairing import PairRecord
from market_aggregator.models import FetchResult, MatchedGroup, Market


def format_usd(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:.0f}"


def format_price(price: float | None) -> str:
    if price is None:
        return "-"
    return f"{price:.2f}"


def truncate_text(text: str, max_len: int) -> str:
    cleaned = (text or "").strip()
    if max_len <= 3 or len(cleaned) <= max_len:
        return cleaned
    return cleaned[: max_len - 3].rstrip() + "..."


def format_pair_line(pair: PairRecord) -> str:
    return (
        f"[{pair.source_a.value}] {truncate_text(pair.title_a, 80)!r} ~ "
        f"[{pair.source_b.value}] {truncate_text(pair.title_b, 80)!r} | score {pair.score:.4f}"
    )


def format_group_block(rank: int, group: MatchedGroup) -> str:
    lines = [f"Group {max(1, int(rank))}: {group.canonical_title}"]
    for m in group.members:
        lines.append(
            f"  [{m.source.value:<10}] Y {format_price(m.yes_price)} / N {format_price(m.no_price)}"
            f" | {format_usd(m.liquidity)}"
        )
    lines.append(
        f"  Weighted: Y {format_price(group.weighted_yes)} / N {format_price(group.weighted_no)}"
        f" | Total liquidity: {format_usd(group.total_liquidity)}"
        f" | Expiry: {group.representative_expiry.strftime('%Y-%m-%d %H:%M')} UTC"
    )
    lines.append(
        f"  Best Yes: {group.best_yes.source.value} @ {format_price(group.best_yes.price)}"
        f" | Best No: {group.best_no.source.value} @ {format_price(group.best_no.price)}"
    )
    return "\n".join(lines)


def format_unmatched_line(market: Market) -> str:
    return f"[{market.source.value}] {truncate_text(market.title, 100)}"


def format_fetch_summary(results: Iterable[FetchResult]) -> List[str]:
    lines: List[str] = []
    for r in results:
        suffix = ""
        if r.skipped:
            suffix = f" ({r.skip_reason})"
        elif r.error:
            suffix = f" (error: {truncate_text(r.error, 120)})"
        lines.append(f"{r.source.value + ':':<12} {len(r.markets)} markets{suffix}")
    return lines


def format_match_report(
    matched: List[MatchedGroup],
    unmatched: List[Market],
    pairs: List[PairRecord],
) -> str:
    sections: List[str] = []
    if pairs:
        sections.append("Candidate pairs:")
        sections.extend(f"  {format_pair_line(p)}" for p in pairs)
    if matched:
        sections.append("Matched groups:")
        sections.extend(format_group_block(i, g) for i, g in enumerate(matched, start=1))
    else:
        sections.append("No cross-source matches.")
    if unmatched:
        sections.append(f"Unmatched ({len(unmatched)}):")
        sections.extend(f"  {format_unmatched_line(m)}" for m in unmatched)
    sections.append(
        f"Summary: {len(matched)} groups | {sum(len(g.members) for g in matched)} grouped markets"
        f" | {len(unmatched)} unmatched"
    )
    return "\n".join(sections)
