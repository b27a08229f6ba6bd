"""
progress.py - Percentage progress for a compression run.

5   source bytes obtained
10  document opened, page count known
10 + i / n * 90 after page i of n, halves rounded up
"""

import logging
import math
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

LOADED = 5
OPENED = 10
DONE = 100


class ProgressReporter:
    """Forwards non-decreasing percentages to an optional callback."""

    def __init__(self, callback: Optional[Callable[[int], None]] = None):
        self.callback = callback
        self.last = 0
        self.closed = False
        self.history: List[int] = []

    def _emit(self, value: int):
        if self.closed or value < self.last:
            return
        self.last = value
        self.history.append(value)
        if self.callback:
            self.callback(value)

    def loaded(self):
        self._emit(LOADED)

    def opened(self):
        self._emit(OPENED)

    def page_done(self, index: int, total: int):
        self._emit(OPENED + math.floor(index / total * (DONE - OPENED) + 0.5))

    def complete(self):
        if self.last < DONE:
            self._emit(DONE)

    def close(self):
        """Stop emitting. Used once a run fails or is cancelled."""
        self.closed = True
