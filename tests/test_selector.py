from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from tokenmeter.selector import select_candidates


class TestSelectCandidates:
    def test_orders_newest_first(
        self,
        tmp_path: "Path",
        now: "datetime",
        write_log: "Callable[..., Path]",
    ) -> "None":
        old = write_log("a/old.jsonl", ["{}"], mtime=now - timedelta(days=2))
        new = write_log("b/c/new.jsonl", ["{}"], mtime=now - timedelta(hours=1))
        mid = write_log("mid.jsonl", ["{}"], mtime=now - timedelta(days=1))

        selection = select_candidates(tmp_path / "projects", now)
        assert [c.path for c in selection] == [new, mid, old]
        assert selection.discovered == 3

    def test_skips_other_extensions_and_directories(
        self,
        tmp_path: "Path",
        now: "datetime",
        write_log: "Callable[..., Path]",
    ) -> "None":
        write_log("session.jsonl", ["{}"], mtime=now)
        write_log("notes.txt", ["{}"], mtime=now)
        (tmp_path / "projects" / "dir.jsonl").mkdir()

        selection = select_candidates(tmp_path / "projects", now)
        assert [c.path.name for c in selection] == ["session.jsonl"]

    def test_excludes_files_older_than_max_age(
        self,
        tmp_path: "Path",
        now: "datetime",
        write_log: "Callable[..., Path]",
    ) -> "None":
        write_log("recent.jsonl", ["{}"], mtime=now - timedelta(days=29))
        write_log("stale.jsonl", ["{}"], mtime=now - timedelta(days=31))

        selection = select_candidates(tmp_path / "projects", now)
        assert [c.path.name for c in selection] == ["recent.jsonl"]
        max_age = timedelta(days=30)
        assert all(now - c.mtime <= max_age for c in selection)

    def test_caps_count(
        self,
        tmp_path: "Path",
        now: "datetime",
        write_log: "Callable[..., Path]",
    ) -> "None":
        for i in range(7):
            write_log(f"s{i}.jsonl", ["{}"], mtime=now - timedelta(minutes=i))

        selection = select_candidates(tmp_path / "projects", now, max_count=3)
        assert len(selection) == 3
        assert selection.discovered == 7
        assert [c.path.name for c in selection] == ["s0.jsonl", "s1.jsonl", "s2.jsonl"]

    def test_missing_root_is_empty(self, tmp_path: "Path", now: "datetime") -> "None":
        selection = select_candidates(tmp_path / "nope", now)
        assert len(selection) == 0
        assert list(selection) == []

    def test_is_restartable(
        self,
        tmp_path: "Path",
        now: "datetime",
        write_log: "Callable[..., Path]",
    ) -> "None":
        write_log("one.jsonl", ["{}"], mtime=now)
        selection = select_candidates(tmp_path / "projects", now)
        assert list(selection) == list(selection)
