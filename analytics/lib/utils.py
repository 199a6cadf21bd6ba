"""
Utility functions for the batch runner.
Atomic JSON writes and raw export loading.

Usage:
    from analytics.lib.utils import atomic_write_json, load_latest_json
"""
import glob
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from analytics.lib.errors import DataFetchError
from analytics.lib.logger import setup_logger

logger = setup_logger(__name__)


def atomic_write_json(data: Dict, file_path: str | Path, indent: int = 2) -> bool:
    """
    Write JSON data to file atomically using temp file + rename.
    Prevents data corruption if the program crashes during write.

    Args:
        data: Dictionary to serialize as JSON.
        file_path: Target file path.
        indent: JSON indentation level.

    Returns:
        True if successful, False otherwise.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote JSON to %s", file_path)
        return True

    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to write JSON to %s: %s", file_path, e)
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.warning("Could not remove temp file %s", temp_path)
        return False


def load_latest_json(directory: str | Path, prefix: str) -> Optional[Any]:
    """
    Load the newest ``<prefix>_*.json`` export from a directory.

    Exports are either the payload itself or wrapped as ``{"results": ...}``.
    Returns None when no export exists; raises DataFetchError when the newest
    export cannot be parsed.
    """
    pattern = str(Path(directory) / f"{prefix}_*.json")
    files = sorted(glob.glob(pattern), reverse=True)
    if not files:
        logger.warning("No raw files found for %s in %s", prefix, directory)
        return None

    latest = files[0]
    logger.info("Loading %s", latest)
    try:
        with open(latest, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DataFetchError(f"Could not read {latest}: {e}", source=latest) from e

    if isinstance(data, dict) and "results" in data:
        return data["results"]
    return data
