"""
Per-user serialization of approval decisions.

One asyncio.Lock per user id, held only while someone is using
it. Locks are process-local; the optimistic version check on
commit covers writers in other processes.
"""

import asyncio
import uuid
import weakref


class UserLockRegistry:
    """Hands out one lock per user id."""

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, user_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
