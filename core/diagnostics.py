"""
Per-run diagnostics log.

Each analysis owns one Diagnostics instance, so repeated or concurrent runs
never share a log buffer. Lines are timestamped, append-only, mirrored to
the standard logger, and can be exported as text.
"""

import os
import time
import logging
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class Diagnostics:
    """Append-only, timestamped event log for a single analysis."""

    def __init__(self, name: str = "analysis", clock=time.localtime):
        self._name = name
        self._clock = clock
        self._lines: List[str] = []
        self._last: Optional[str] = None
        self._lock = threading.Lock()

    def log(self, message: str, level: int = logging.DEBUG) -> str:
        """Record an event and return the formatted line."""
        stamp = time.strftime("%H:%M:%S", self._clock())
        line = f"[{stamp}] {message}"
        with self._lock:
            self._lines.append(line)
            self._last = message
        logger.log(level, "%s: %s", self._name, message)
        return line

    def warn(self, message: str) -> str:
        return self.log(message, level=logging.WARNING)

    @property
    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    @property
    def last(self) -> Optional[str]:
        """Most recent message, without timestamp (status line)."""
        return self._last

    def export(self) -> str:
        """Full log as newline-joined text."""
        with self._lock:
            return "\n".join(self._lines)

    def save(self, path: str) -> str:
        """Write the log to a file, creating parent directories."""
        log_dir = os.path.dirname(path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.export())
            f.write("\n")
        logger.info("Diagnostics log written to %s", path)
        return path

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
