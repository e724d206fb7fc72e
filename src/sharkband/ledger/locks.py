"""Per-user mutual exclusion for the append-then-apply sequence."""

from __future__ import annotations

import asyncio
import weakref


class UserLockRegistry:
    """Hands out one ``asyncio.Lock`` per user id.

    Locks are held weakly, so entries for idle users disappear once no task
    references them. There is no registry-wide lock: users never wait on each
    other.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_user(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
