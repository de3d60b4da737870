from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

LOGGER = logging.getLogger(__name__)


def extract_records(payload: Any) -> List[dict[str, Any]]:
    """Pull the row list out of a captured core-api response."""

    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        return []
    return [row for row in payload if isinstance(row, dict)]


def load_snapshot(path: str | Path) -> List[dict[str, Any]]:
    """Read an already-captured snapshot; an unusable file is an empty batch."""

    snapshot_path = Path(path)
    try:
        text = snapshot_path.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Snapshot %s unavailable: %s", snapshot_path, exc)
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Snapshot %s is not valid JSON: %s", snapshot_path, exc)
        return []
    records = extract_records(payload)
    if not records:
        LOGGER.info("Snapshot %s contained no rows", snapshot_path)
    return records


__all__ = ["extract_records", "load_snapshot"]
