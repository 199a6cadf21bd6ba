"""
Ranked top-N lists for presentation cards.

Entries are ordered by count descending. Python's sort is stable, so ties
keep the first-seen order of the breakdown; labels never take part in the
ordering. An empty breakdown yields a single no-data sentinel entry.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional

from analytics.lib.errors import ContractViolationError
from models.analytics_models import GroupStats, Icon, TopNEntry

DEFAULT_LIMIT = 3
NO_DATA_VALUE = "No data"
NO_MARKETS = "No markets"


def pluralize_tasks(count: int) -> str:
    return f"{count} task" if count == 1 else f"{count} tasks"


def format_hours(hours: float) -> str:
    """``5.0 -> "5h"``, ``2.5 -> "2.5h"``."""
    hours = round(hours, 2)
    return f"{int(hours)}h" if float(hours).is_integer() else f"{hours}h"


def format_footprint(market_counts: Mapping[str, int]) -> str:
    """Render market counts as ``"3xro de"``, most frequent first."""
    ranked = sorted(market_counts.items(), key=lambda item: item[1], reverse=True)
    badges = [
        market if count == 1 else f"{count}x{market}"
        for market, count in ranked
    ]
    return " ".join(badges) or NO_MARKETS


def no_data_entry(icon: Icon, label: str) -> TopNEntry:
    return TopNEntry(
        icon=icon, label=label, value=NO_DATA_VALUE, sub_value="", is_no_data=True,
    )


def header_entry(icon: Icon, label: str) -> TopNEntry:
    return TopNEntry(icon=icon, label=label, is_header=True)


def with_header(icon: Icon, label: str, entries: List[TopNEntry]) -> List[TopNEntry]:
    return [header_entry(icon, label), *entries]


def top_n(
    breakdown: Mapping[str, GroupStats],
    n: int = DEFAULT_LIMIT,
    no_data_label: str = NO_DATA_VALUE,
    icon: Icon = Icon.TRENDING_UP,
    labeler: Optional[Callable[[str], str]] = None,
    footprints: Optional[Dict[str, Dict[str, int]]] = None,
    with_hours: bool = False,
) -> List[TopNEntry]:
    """
    Turn a breakdown into at most ``n`` ranked entries.

    Args:
        breakdown: Group label -> GroupStats, in first-seen order.
        n: Maximum number of entries (>= 1).
        no_data_label: Label of the sentinel returned for an empty breakdown.
        icon: Icon token for every entry.
        labeler: Maps a group key (e.g. a user id) to its display label.
        footprints: Group key -> market counts; when given, each entry's
            sub_value renders the group's market footprint.
        with_hours: Also render the group's summed hours as hours_value.

    Returns:
        Between 1 and ``n`` entries; never an empty list.
    """
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ContractViolationError(
            f"n must be a positive integer, got {n!r}", argument="n", received=n,
        )

    ranked = sorted(breakdown.items(), key=lambda item: item[1].count, reverse=True)[:n]
    if not ranked:
        return [no_data_entry(icon, no_data_label)]

    entries = []
    for key, stats in ranked:
        sub_value = ""
        if footprints is not None:
            sub_value = format_footprint(footprints.get(key, {}))
        entries.append(TopNEntry(
            icon=icon,
            label=labeler(key) if labeler else key,
            value=pluralize_tasks(stats.count),
            sub_value=sub_value,
            hours_value=format_hours(stats.hours) if with_hours else "",
        ))
    return entries
