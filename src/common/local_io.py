"""Local file I/O utilities."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from common.serialization import serialize_dataclass

logger = logging.getLogger(__name__)


def read_jsonl_local(path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield records from a local JSONL file, skipping blank lines."""
    path = Path(path)
    with path.open() as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)


def save_jsonl_records_local(
    records: list[Any],
    prefix: str,
    output_dir: str = "output",
) -> Path:
    """
    Save a list of records to a local JSONL file.

    Dataclass records are serialized, dicts are written as-is.

    Args:
        records: List of dataclass objects or dicts to save
        prefix: Filename prefix (e.g., "deduped_articles")
        output_dir: Directory to save to (default: "output")

    Returns:
        Path to the created file.
    """
    now = datetime.now(timezone.utc)
    output_path = Path(output_dir)
    output_path.mkdir(exist_ok=True)

    filename = f"{prefix}_{now.strftime('%Y_%m_%d_%H_%M')}.jsonl"
    filepath = output_path / filename

    with filepath.open("w") as f:
        for record in records:
            serialized = record if isinstance(record, dict) else serialize_dataclass(record)
            f.write(json.dumps(serialized, default=str, ensure_ascii=False) + "\n")

    logger.info("Saved %d records to %s", len(records), filepath)
    return filepath


def read_json_local(path: str | Path) -> dict[str, Any] | None:
    """Read a JSON document, returning None when the file does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    with path.open() as f:
        return json.load(f)


def write_json_local(data: dict[str, Any], path: str | Path) -> None:
    """Write a JSON document atomically (write to temp file, then replace)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w") as f:
        json.dump(data, f, default=str)
    tmp_path.replace(path)
