import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
from prometheus_client import CollectorRegistry


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def now() -> "datetime":
    return datetime(2026, 2, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def log_line() -> "Callable[..., str]":
    """
    builds one assistant log line in the common nested shape.
    """

    def _build(
        message_id: "str",
        timestamp: "datetime",
        input_tokens: "int" = 0,
        output_tokens: "int" = 0,
        cache_creation: "int" = 0,
        cache_read: "int" = 0,
    ) -> "str":
        entry: "dict[str, Any]" = {
            "type": "assistant",
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "message": {
                "id": message_id,
                "usage": {
                    "input_tokens": input_tokens,
                    "output_tokens": output_tokens,
                    "cache_creation_input_tokens": cache_creation,
                    "cache_read_input_tokens": cache_read,
                },
            },
        }
        return json.dumps(entry)

    return _build


@pytest.fixture()
def write_log(tmp_path: "Path") -> "Callable[..., Path]":
    """
    writes lines to a .jsonl file under tmp_path/projects and sets
    its modification time.
    """

    def _write(
        relative: "str",
        lines: "list[str]",
        mtime: "datetime | None" = None,
    ) -> "Path":
        path = tmp_path / "projects" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        if mtime is not None:
            ts = mtime.timestamp()
            os.utime(path, (ts, ts))
        return path

    return _write


@pytest.fixture()
def write_stats_cache(tmp_path: "Path") -> "Callable[[dict[str, Any]], Path]":
    def _write(document: "dict[str, Any]") -> "Path":
        path = tmp_path / "stats-cache.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write
