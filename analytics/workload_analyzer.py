"""
Workload Analyzer
===================

Reads the latest raw task export from data/raw/ and writes the workload
analytics snapshot (category mix, time distribution, top markets, AI tools,
deliverables, contributors, reporters, products and busiest days).

Key design decisions:
  - The newest tasks_*.json export wins; users_*.json and reporters_*.json
    are optional id -> name directories used for display labels
  - Filters come from CLI flags first, then the environment
  - The output file is replaced atomically so readers never see a
    half-written snapshot

Outputs to data/processed/workload_metrics.json.

Usage:
    python analytics/workload_analyzer.py --period 2026-09 --limit 5
"""

from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR))

RAW_DIR = BASE_DIR / "data" / "raw"
PROCESSED_DIR = BASE_DIR / "data" / "processed"
OUTPUT_FILE = "workload_metrics.json"

load_dotenv(BASE_DIR / ".env")

from analytics.engine.facade import build_snapshot
from analytics.engine.top_n import DEFAULT_LIMIT
from analytics.lib.errors import AnalyticsError, ConfigError
from analytics.lib.logger import setup_logger
from analytics.lib.utils import atomic_write_json, load_latest_json

logger = setup_logger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def read_top_n() -> int:
    """ANALYTICS_TOP_N as a positive int (default 3)."""
    raw = os.getenv("ANALYTICS_TOP_N")
    if raw is None or not raw.strip():
        return DEFAULT_LIMIT
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigError(
            f"ANALYTICS_TOP_N must be an integer, got {raw!r}", variable="ANALYTICS_TOP_N",
        ) from e
    if value < 1:
        raise ConfigError(
            f"ANALYTICS_TOP_N must be at least 1, got {value}", variable="ANALYTICS_TOP_N",
        )
    return value


def resolve_output_path(output: Optional[str] = None) -> Path:
    if output:
        return Path(output)
    return Path(os.getenv("ANALYTICS_PROCESSED_DIR") or PROCESSED_DIR) / OUTPUT_FILE


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_workload_analysis(
    period_id: Optional[str] = None,
    user_id: Optional[str] = None,
    reporter_id: Optional[str] = None,
    department: Optional[str] = None,
    limit: Optional[int] = None,
    raw_dir: Optional[str] = None,
    output: Optional[str] = None,
) -> Dict[str, Any]:
    logger.info("=== Workload Analysis Starting ===")

    source_dir = Path(raw_dir or os.getenv("ANALYTICS_RAW_DIR") or RAW_DIR)
    tasks: List[Any] = load_latest_json(source_dir, "tasks") or []
    users = load_latest_json(source_dir, "users") or {}
    reporters = load_latest_json(source_dir, "reporters") or {}
    logger.info(
        "Loaded: %d tasks, %d users, %d reporters",
        len(tasks) if isinstance(tasks, list) else 0, len(users), len(reporters),
    )

    filters = {
        "period_id": period_id or os.getenv("ANALYTICS_PERIOD_ID"),
        "contributor_id": user_id,
        "source_id": reporter_id,
        "department": department,
        "limit": limit if limit is not None else read_top_n(),
    }

    logger.info("Building snapshot...")
    snapshot = build_snapshot(tasks, filters, users=users, reporters=reporters)

    output_data = {
        "generated_at": _now_utc().isoformat(),
        "data_source": "tasks",
        "snapshot": snapshot.model_dump(mode="json"),
    }

    output_path = resolve_output_path(output)
    if atomic_write_json(output_data, output_path):
        logger.info("Workload analysis complete. Output saved to %s", output_path)
    else:
        logger.error("Workload analysis complete but output could not be saved to %s", output_path)
    return output_data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Workforce workload analytics")
    parser.add_argument("--period", help="Reporting period id (default: ANALYTICS_PERIOD_ID)")
    parser.add_argument("--user", help="Only tasks owned or created by this user id")
    parser.add_argument("--reporter", help="Only tasks from this reporter id")
    parser.add_argument("--department", help="Only tasks tagged with this department")
    parser.add_argument("--limit", type=int, help="Top-N size (default: ANALYTICS_TOP_N or 3)")
    parser.add_argument("--raw-dir", help="Directory holding the raw exports")
    parser.add_argument("--output", help="Output file path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        results = run_workload_analysis(
            period_id=args.period,
            user_id=args.user,
            reporter_id=args.reporter,
            department=args.department,
            limit=args.limit,
            raw_dir=args.raw_dir,
            output=args.output,
        )
    except AnalyticsError as e:
        logger.error("Workload analysis failed: %s", e)
        return 1

    snapshot = results["snapshot"]
    summary = snapshot["summary"]
    print(f"\nAnalysis complete.")
    print(f"  Period: {snapshot['period_id'] or 'all'}")
    print(f"  Tasks: {summary['total_tasks']} ({summary['total_hours']} hours)")
    print(f"  AI usage: {summary['tasks_with_ai']} tasks ({summary['ai_usage_percentage']}%)")
    print(f"  Cache key: {snapshot['cache_key']}")
    print(f"Output: {resolve_output_path(args.output)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
