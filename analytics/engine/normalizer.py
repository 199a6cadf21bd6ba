"""
Record normalization.

Raw work items arrive in several shapes: attributes may sit at the root of
the record or inside a nested container ("details", or the legacy
"data_task"), under camelCase, snake_case or legacy key names. Each logical
attribute is resolved by first_present() over an ordered list of locations:
the root first, then each nested container in NESTED_CONTAINERS order.
"""
from __future__ import annotations

import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from analytics.engine.dates import resolve_date, resolve_timestamp
from analytics.lib.errors import MalformedRecordError
from analytics.lib.logger import setup_logger
from models.analytics_models import AIUsage, Deliverable, WorkItemRecord

logger = setup_logger(__name__)

NESTED_CONTAINERS = ("details", "data_task")

# Logical attribute -> accepted key names, in preference order.
FIELD_ALIASES = {
    "id": ("id", "taskId", "task_id"),
    "reporting_period_id": ("reportingPeriodId", "reporting_period_id", "monthId", "month_id"),
    "owner_id": ("ownerId", "owner_id", "userUID", "userId"),
    "created_by_id": ("createdById", "created_by_id", "createbyUID", "createdByUID"),
    "reporter_id": ("reporterId", "reporter_id", "reporters", "reporterUID"),
    "departments": ("departments", "department"),
    "product": ("product", "products"),
    "markets": ("markets", "market"),
    "hours": ("hours", "timeInHours", "time_in_hours"),
    "ai_usage": ("aiUsage", "ai_usage"),
    "ai_models": ("aiModels", "ai_models"),
    "ai_time": ("aiTime", "ai_time", "timeSpentOnAI"),
    "deliverables": ("deliverables",),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
    "is_priority": ("isPriority", "is_priority"),
    "is_reworked": ("isReworked", "is_reworked"),
}

_MISSING = object()


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def first_present(raw: Mapping, keys: Sequence[str], default: Any = None) -> Any:
    """
    Return the first present value for any of ``keys``.

    The root of the record is searched first, then each nested container.
    A value is present when it is neither None nor a blank string, so a flat
    ``0`` wins over a nested ``5``.
    """
    locations: List[Mapping] = [raw]
    for container in NESTED_CONTAINERS:
        nested = raw.get(container)
        if isinstance(nested, Mapping):
            locations.append(nested)

    for location in locations:
        for key in keys:
            value = location.get(key, _MISSING)
            if value is not _MISSING and _is_present(value):
                return value
    return default


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def _as_number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (OverflowError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False


def _as_text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [text for text in (_as_text(v) for v in value) if text]


def _normalize_markets(value: Any) -> Tuple[str, ...]:
    return tuple(m.lower() for m in _as_text_list(value))


def _normalize_ai_usage(raw: Mapping) -> Tuple[AIUsage, ...]:
    entries = first_present(raw, FIELD_ALIASES["ai_usage"])
    if isinstance(entries, Mapping):
        entries = [entries]

    usage: List[AIUsage] = []
    if isinstance(entries, (list, tuple)):
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            models = _as_text_list(entry.get("models") or entry.get("aiModels"))
            hours = max(_as_number(entry.get("aiHours", entry.get("ai_hours"))), 0.0)
            if models or hours:
                usage.append(AIUsage(models=tuple(models), ai_hours=hours))
        return tuple(usage)

    # Legacy shape: a flat model list plus one aiTime value
    models = _as_text_list(first_present(raw, FIELD_ALIASES["ai_models"]))
    hours = max(_as_number(first_present(raw, FIELD_ALIASES["ai_time"])), 0.0)
    if models or hours:
        usage.append(AIUsage(models=tuple(models), ai_hours=hours))
    return tuple(usage)


def _normalize_deliverables(value: Any) -> Tuple[Deliverable, ...]:
    if isinstance(value, (str, Mapping)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()

    deliverables: List[Deliverable] = []
    for entry in value:
        if isinstance(entry, str):
            name = _as_text(entry)
            count = 1.0
        elif isinstance(entry, Mapping):
            name = _as_text(entry.get("name"))
            count = _as_number(entry.get("count"), default=1.0)
        else:
            continue
        if name:
            deliverables.append(Deliverable(name=name, count=count))
    return tuple(deliverables)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_record(raw: Any, index: int = None) -> WorkItemRecord:
    """
    Canonicalize one raw work item into a WorkItemRecord.

    Fields with the wrong shape fall back to their defaults. Raises
    MalformedRecordError only when ``raw`` is not a mapping at all.
    """
    if isinstance(raw, WorkItemRecord):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(
            f"Work item must be a mapping, got {type(raw).__name__}", index=index,
        )

    def text(field: str) -> Optional[str]:
        return _as_text(first_present(raw, FIELD_ALIASES[field]))

    return WorkItemRecord(
        id=text("id") or "",
        reporting_period_id=text("reporting_period_id"),
        owner_id=text("owner_id"),
        created_by_id=text("created_by_id"),
        reporter_id=text("reporter_id"),
        departments=tuple(_as_text_list(first_present(raw, FIELD_ALIASES["departments"]))),
        product=text("product"),
        markets=_normalize_markets(first_present(raw, FIELD_ALIASES["markets"])),
        hours=max(_as_number(first_present(raw, FIELD_ALIASES["hours"])), 0.0),
        ai_usage=_normalize_ai_usage(raw),
        deliverables=_normalize_deliverables(first_present(raw, FIELD_ALIASES["deliverables"])),
        created_at=resolve_date(first_present(raw, FIELD_ALIASES["created_at"])),
        updated_at=resolve_timestamp(first_present(raw, FIELD_ALIASES["updated_at"])),
        is_priority=_as_flag(first_present(raw, FIELD_ALIASES["is_priority"])),
        is_reworked=_as_flag(first_present(raw, FIELD_ALIASES["is_reworked"])),
    )


def normalize_records(raw_records: Iterable[Any]) -> Tuple[List[WorkItemRecord], int]:
    """Normalize a batch, returning (records, skipped_count)."""
    records: List[WorkItemRecord] = []
    skipped = 0
    for index, raw in enumerate(raw_records):
        try:
            records.append(normalize_record(raw, index=index))
        except MalformedRecordError as e:
            logger.warning("Skipping work item: %s", e)
            skipped += 1
    return records, skipped
