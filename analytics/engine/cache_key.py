"""
Cache key derivation for externally memoized snapshots.

Key layout:
    <period or "all">_<user or "all">_<count>_<max updatedAt in epoch ms>_<sorted ids>

The id list is sorted before joining and truncated afterwards, so the key
depends on the record set and never on its arrival order.
"""
from __future__ import annotations

from typing import Any, Optional

from analytics.engine.aggregator import ensure_record_collection
from analytics.engine.dates import to_epoch_ms
from analytics.engine.normalizer import normalize_record

DEFAULT_ID_CHARS = 100


def build_cache_key(
    records: Any,
    period_id: Optional[str],
    user_id: Optional[str] = None,
    id_chars: int = DEFAULT_ID_CHARS,
) -> str:
    """Stable key for (record set, modification marker, period, user)."""
    items = [normalize_record(raw) for raw in ensure_record_collection(records)]

    max_marker = max((to_epoch_ms(record.updated_at) for record in items), default=0)
    ids = ",".join(sorted(record.id for record in items))[:id_chars]

    return f"{period_id or 'all'}_{user_id or 'all'}_{len(items)}_{max_marker}_{ids}"
