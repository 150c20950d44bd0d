"""
proactive/locks.py — Per-job lock registry

Non-blocking, in-memory mutual exclusion keyed by job name. Contention is
reported (acquire() returns False), never waited on: a job that is already
running turns the second request into a "skipped" result instead of a
queued one.

Scope is one process. Replicas each hold their own registry, so two
replicas can run the same job at once.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Optional

from speakerbot.store.models import utc_now


class LockRegistry:

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._held: dict[str, datetime] = {}
        self._mutex = threading.Lock()

    def acquire(self, name: str) -> bool:
        """Take the lock for name. Returns False without side effects if held."""
        with self._mutex:
            if name in self._held:
                return False
            self._held[name] = self._clock()
            return True

    def release(self, name: str) -> None:
        """Drop the lock for name. Releasing a lock that is not held is a no-op."""
        with self._mutex:
            self._held.pop(name, None)

    def is_held(self, name: str) -> bool:
        with self._mutex:
            return name in self._held

    def held_since(self, name: str) -> Optional[datetime]:
        with self._mutex:
            return self._held.get(name)

    def snapshot(self) -> dict[str, str]:
        """Held locks as {name: ISO acquisition time}, for status output."""
        with self._mutex:
            return {name: at.isoformat() for name, at in self._held.items()}
