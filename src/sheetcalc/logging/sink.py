"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event to
``<log_dir>/events.ndjson``.  Writes use ``json.dumps(sort_keys=True)``
for deterministic output.

Concurrency safety:

- Each append acquires an exclusive ``fcntl.flock`` on the target file.
- Reads acquire a shared lock.
- On platforms without ``fcntl`` (Windows), locking is skipped.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from sheetcalc.logging.events import CalcEvent

# fcntl is Unix only
try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

_MAX_READ_LIMIT = 2000


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, log_dir: Path, *, fsync: bool = False) -> None:
        self.log_dir = log_dir
        self.path = log_dir / "events.ndjson"
        self._fsync = fsync
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, event: CalcEvent) -> None:
        """Append *event* to the log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        self._append(self.path, line)

    def read(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        sequence: int | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events most-recent-first, with optional filters.

        *sequence* selects the events of one recalculation job.
        """
        limit = min(limit, _MAX_READ_LIMIT)
        events = self._read_ndjson(self.path)
        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        if sequence is not None:
            events = [e for e in events if e.get("context", {}).get("sequence") == sequence]
        events.reverse()
        return events[:limit]

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under exclusive file lock."""
        path.parent.mkdir(parents=True, exist_ok=True)

        if _HAS_FCNTL:
            fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                os.write(fd, line.encode("utf-8"))
                if self._fsync:
                    os.fsync(fd)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
        else:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                if self._fsync:
                    f.flush()
                    os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        """Read an NDJSON file under a shared lock, skipping corrupt lines."""
        if not path.exists():
            return []
        if _HAS_FCNTL:
            fd = os.open(str(path), os.O_RDONLY)
            try:
                fcntl.flock(fd, fcntl.LOCK_SH)
                with os.fdopen(os.dup(fd), "r", encoding="utf-8", errors="replace") as f:
                    raw = f.read()
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
        else:
            raw = path.read_text(encoding="utf-8", errors="replace")

        events: list[dict[str, Any]] = []
        for line in raw.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events
