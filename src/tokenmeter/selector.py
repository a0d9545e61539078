import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import structlog

logger = structlog.get_logger()

LOG_EXTENSION = ".jsonl"
DEFAULT_MAX_AGE_SECONDS = int(timedelta(days=30).total_seconds())
DEFAULT_MAX_COUNT = 200


@dataclass(frozen=True, slots=True)
class LogCandidate:
    path: "Path"
    mtime: "datetime"


@dataclass(frozen=True, slots=True)
class CandidateSelection:
    """
    CandidateSelection is the ordered, capped list of log files to
    scan in one refresh, newest first. Iterating it again yields the
    same files; nothing is re-read from disk.
    """

    candidates: "tuple[LogCandidate, ...]" = ()
    # number of recent files found before the count cap was applied
    discovered: "int" = 0

    def __iter__(self) -> "Iterator[LogCandidate]":
        return iter(self.candidates)

    def __len__(self) -> "int":
        return len(self.candidates)


def _walk_log_files(root: "Path") -> "Iterator[os.DirEntry[str]]":
    """
    walks root with an explicit stack, yielding regular files with
    the log extension. Unreadable subdirectories are skipped.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            stack.append(Path(entry.path))
                        elif entry.is_file() and entry.name.endswith(LOG_EXTENSION):
                            yield entry
                    except OSError:
                        continue
        except OSError as err:
            logger.debug("log_dir_unreadable", path=str(current), error=str(err))


def select_candidates(
    root: "Path",
    now: "datetime",
    max_age_seconds: "int" = DEFAULT_MAX_AGE_SECONDS,
    max_count: "int" = DEFAULT_MAX_COUNT,
) -> "CandidateSelection":
    """
    discovers log files under root modified within max_age_seconds
    of now, sorted by modification time descending and truncated
    to max_count. A missing or unreadable root yields an empty
    selection.
    """
    cutoff = now.timestamp() - max_age_seconds
    found: "list[LogCandidate]" = []

    for entry in _walk_log_files(root):
        try:
            mtime = entry.stat().st_mtime
        except OSError:
            continue
        if mtime < cutoff:
            continue
        found.append(
            LogCandidate(
                path=Path(entry.path),
                mtime=datetime.fromtimestamp(mtime, tz=timezone.utc),
            )
        )

    found.sort(key=lambda c: c.mtime, reverse=True)
    selected = tuple(found[: max(0, max_count)])

    logger.debug(
        "log_candidates_selected",
        root=str(root),
        discovered=len(found),
        selected=len(selected),
    )
    return CandidateSelection(candidates=selected, discovered=len(found))
