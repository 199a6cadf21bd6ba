"""
Dimension aggregation and percentage math.

aggregate() groups records by the key(s) an extractor returns and folds
each group into a GroupStats (count, summed hours). Multi-valued keys count
once per distinct key per record. Records whose extractor returns nothing,
or fails on them, contribute to no group for that dimension only.

Percentages are always computed against the sum of the values being
displayed, never against the number of input records.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from functools import reduce
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from analytics.lib.errors import ContractViolationError
from analytics.lib.logger import setup_logger
from models.analytics_models import GroupStats, WorkItemRecord

logger = setup_logger(__name__)

K = TypeVar("K")

KeyExtractor = Callable[[WorkItemRecord], Union[str, Iterable, None]]
HoursExtractor = Callable[[WorkItemRecord], Any]

_EXTRACTOR_ERRORS = (TypeError, ValueError, AttributeError, KeyError)


def ensure_record_collection(records: Any, argument: str = "records") -> List[Any]:
    """Materialize ``records`` as a list or fail loudly on a non-collection."""
    if (
        isinstance(records, (str, bytes, bytearray, Mapping))
        or not isinstance(records, Iterable)
    ):
        raise ContractViolationError(
            f"{argument} must be a collection of work items, "
            f"got {type(records).__name__}",
            argument=argument, received=records,
        )
    return list(records)


def _key_text(value: Any) -> Optional[str]:
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def extract_keys(record: WorkItemRecord, key_extractor: KeyExtractor) -> Tuple[str, ...]:
    """Distinct non-blank keys of one record, in first-seen order."""
    try:
        value = key_extractor(record)
    except _EXTRACTOR_ERRORS as e:
        logger.debug("Key extraction skipped record %r: %s", getattr(record, "id", None), e)
        return ()

    if value is None:
        return ()
    if isinstance(value, (str, Enum)):
        candidates: Iterable = (value,)
    elif isinstance(value, Iterable) and not isinstance(value, Mapping):
        candidates = value
    else:
        return ()

    keys = (_key_text(candidate) for candidate in candidates)
    return tuple(dict.fromkeys(key for key in keys if key))


def _record_hours(record: WorkItemRecord) -> float:
    return record.hours


def _hours_value(record: WorkItemRecord, hours_extractor: HoursExtractor) -> float:
    try:
        value = hours_extractor(record)
    except _EXTRACTOR_ERRORS:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


def _fold(
    breakdown: Dict[str, GroupStats],
    labelled: Tuple[Tuple[str, ...], float],
) -> Dict[str, GroupStats]:
    keys, hours = labelled
    if not keys:
        return breakdown
    return {
        **breakdown,
        **{
            key: GroupStats(
                count=breakdown[key].count + 1,
                hours=breakdown[key].hours + hours,
            )
            for key in keys
        },
    }


def aggregate(
    records: Any,
    key_extractor: KeyExtractor,
    hours_extractor: Optional[HoursExtractor] = None,
) -> Dict[str, GroupStats]:
    """
    Group records by extracted key(s) into {key: GroupStats(count, hours)}.

    Runs a discovery pass that collects the groups in first-seen order,
    then a counting pass that folds every record into a fresh mapping.
    Every group in the result has at least one member.
    """
    items = ensure_record_collection(records)
    hours_extractor = hours_extractor or _record_hours

    labelled = [
        (extract_keys(record, key_extractor), _hours_value(record, hours_extractor))
        for record in items
    ]

    groups = dict.fromkeys(key for keys, _ in labelled for key in keys)
    if not groups:
        return {}

    folded = reduce(_fold, labelled, {key: GroupStats() for key in groups})
    return {
        key: GroupStats(count=stats.count, hours=round(stats.hours, 2))
        for key, stats in folded.items()
    }


def group_records(
    records: Any, key_extractor: KeyExtractor,
) -> Dict[str, List[WorkItemRecord]]:
    """Members of every group, in first-seen group and record order."""
    items = ensure_record_collection(records)
    members: Dict[str, List[WorkItemRecord]] = {}
    for record in items:
        for key in extract_keys(record, key_extractor):
            members.setdefault(key, []).append(record)
    return members


def market_footprints(
    records: Any,
    key_extractor: KeyExtractor,
    market_extractor: KeyExtractor = lambda record: record.markets,
) -> Dict[str, Dict[str, int]]:
    """Per-entity market counts; a record counts once per distinct market."""
    return {
        entity: {
            market: stats.count
            for market, stats in aggregate(members, market_extractor).items()
        }
        for entity, members in group_records(records, key_extractor).items()
    }


# ---------------------------------------------------------------------------
# Percentage math
# ---------------------------------------------------------------------------

def round_half_away(value: float, places: int = 1) -> float:
    """Round to ``places`` decimals, ties away from zero (12.25 -> 12.3)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _tenths(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP).scaleb(1))


def percentages(values: Mapping[K, float]) -> Dict[K, float]:
    """
    Share of each value in the sum of all values, in [0, 100].

    Each share is rounded to one decimal, ties away from zero. When the
    rounded shares drift more than 0.1 away from 100 (many equal groups),
    the excess tenths are taken back from the groups rounded furthest in
    that direction, first-seen first, so the sum stays within 0.1 of 100.
    A zero (or negative) base yields 0 for every key instead of NaN.
    """
    base = sum(values.values())
    if base <= 0:
        return {key: 0.0 for key in values}

    shares = {key: 100 * value / base for key, value in values.items()}
    tenths = {key: _tenths(share) for key, share in shares.items()}

    drift = sum(tenths.values()) - 1000
    if abs(drift) > 1 and all(value >= 0 for value in values.values()):
        step = 1 if drift > 0 else -1
        overshoot = {key: step * (tenths[key] / 10 - shares[key]) for key in tenths}
        for key in sorted(overshoot, key=overshoot.get, reverse=True)[:abs(drift) - 1]:
            tenths[key] -= step

    return {key: tenths[key] / 10 for key in tenths}


def breakdown_total(breakdown: Mapping[str, GroupStats]) -> int:
    return sum(stats.count for stats in breakdown.values())


def breakdown_percentages(breakdown: Mapping[str, GroupStats]) -> Dict[str, float]:
    """Count-based percentages; the base is the sum of group counts."""
    return percentages({key: stats.count for key, stats in breakdown.items()})


