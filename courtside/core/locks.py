"""Per-tournament locks that serialize bracket advancement."""

from __future__ import annotations

import threading
import weakref
from typing import TYPE_CHECKING

from flask import current_app, has_app_context

if TYPE_CHECKING:
    from flask import Flask

EXTENSION_KEY = "tournament_locks"


class LockRegistry:
    """Hands out one re-entrant lock per tournament id.

    Result submission holds the lock while it writes the match and runs the
    advancement pass, which takes the same lock again. A lock is dropped
    once no caller holds a reference to it, so the registry only keeps the
    tournaments currently being written.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = (
            weakref.WeakValueDictionary()
        )

    def for_tournament(self, tournament_id: str) -> threading.RLock:
        """Return the lock owned by a tournament, creating it on first use."""
        with self._guard:
            lock = self._locks.get(tournament_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[tournament_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class TournamentLocks:
    """Flask extension that gives every app its own lock registry."""

    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Attach a fresh registry to the application."""
        app.extensions[EXTENSION_KEY] = LockRegistry()


def get_lock_registry(locks: LockRegistry | None = None) -> LockRegistry:
    """Resolve the registry to use, preferring an explicitly passed one."""
    if locks is not None:
        return locks
    if has_app_context() and EXTENSION_KEY in current_app.extensions:
        return current_app.extensions[EXTENSION_KEY]
    # Outside an app there is nothing to share the lock with.
    return LockRegistry()
