from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from ..common.clock import Clock, SystemClock


class InMemoryStore:
    """Process-local tables shared by the in-memory repositories.

    ``transaction()`` serializes writers and restores every table if the
    block raises, giving the same all-or-nothing behaviour as a DB commit.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.sessions: dict = {}
        self.corrections: dict = {}
        self.audit: list = []
        self._counters: dict[str, int] = {}
        self._lock = threading.RLock()

    def next_id(self, table: str) -> int:
        with self._lock:
            self._counters[table] = self._counters.get(table, 0) + 1
            return self._counters[table]

    def now(self) -> datetime:
        return self.clock.now()

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._lock:
            sessions = dict(self.sessions)
            corrections = dict(self.corrections)
            audit = list(self.audit)
            try:
                yield self
            except Exception:
                self.sessions = sessions
                self.corrections = corrections
                self.audit = audit
                raise
