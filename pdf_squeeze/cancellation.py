"""
cancellation.py - Cooperative cancellation for a single run.
"""

import threading

from .exceptions import Cancelled


class CancellationToken:
    """
    Thread-safe cancel flag.

    Another thread (a UI, or a threading.Timer acting as a timeout) calls
    cancel(); the pipeline polls raise_if_cancelled() at its checkpoints.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(self.reason)
