"""
Cancellation token checked by the pipeline between sampled frames.
"""

import threading

from core.errors import AnalysisCancelledError


class CancellationToken:
    """Thread-safe flag that aborts an in-flight analysis at the next frame."""

    def __init__(self):
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled"):
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise AnalysisCancelledError(self._reason)
