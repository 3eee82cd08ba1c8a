"""Tests for common.local_io module."""

import json
from pathlib import Path

from common.local_io import (
    read_json_local,
    read_jsonl_local,
    save_jsonl_records_local,
    write_json_local,
)


class TestJsonl:
    def test_save_and_read_dicts(self, tmp_path: Path) -> None:
        records = [{"title": "A"}, {"title": "B"}]
        path = save_jsonl_records_local(records, "articles", output_dir=str(tmp_path))
        assert path.name.startswith("articles_")
        assert list(read_jsonl_local(path)) == records

    def test_blank_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "batch.jsonl"
        path.write_text('{"title": "A"}\n\n{"title": "B"}\n')
        assert [r["title"] for r in read_jsonl_local(path)] == ["A", "B"]


class TestJson:
    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert read_json_local(tmp_path / "missing.json") is None

    def test_write_creates_parent_dirs(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "quota.json"
        write_json_local({"remaining": 5}, path)
        assert json.loads(path.read_text()) == {"remaining": 5}
        assert read_json_local(path) == {"remaining": 5}
