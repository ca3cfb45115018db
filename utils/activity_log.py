"""Bounded in-memory activity log fed from the logging module."""

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

DEFAULT_MAX_ENTRIES = 100


class ActivityLog:
    """
    Append-only buffer of recent activity.

    Once ``max_entries`` is reached the oldest entry is dropped silently.
    Reads return newest first. Nothing in the pipeline branches on this log.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: Deque[Dict[str, Optional[str]]] = deque(maxlen=max_entries)

    def append(self, level: str, message: str, source: Optional[str] = None) -> Dict[str, Optional[str]]:
        entry = {
            "id": uuid.uuid4().hex[:7],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "source": source,
        }
        self._entries.append(entry)
        return entry

    def info(self, message: str, source: Optional[str] = None):
        return self.append("info", message, source)

    def warn(self, message: str, source: Optional[str] = None):
        return self.append("warn", message, source)

    def error(self, message: str, source: Optional[str] = None):
        return self.append("error", message, source)

    def entries(self) -> List[Dict[str, Optional[str]]]:
        return list(reversed(self._entries))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ActivityLogHandler(logging.Handler):
    """Copies log records into an ActivityLog."""

    def __init__(self, activity_log: ActivityLog, level: int = logging.INFO):
        super().__init__(level)
        self.activity_log = activity_log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno >= logging.ERROR:
                level = "error"
            elif record.levelno >= logging.WARNING:
                level = "warn"
            else:
                level = "info"
            source = record.name.rsplit(".", 1)[-1]
            self.activity_log.append(level, record.getMessage(), source)
        except Exception:
            self.handleError(record)
