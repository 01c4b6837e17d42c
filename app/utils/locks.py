"""Per-key asyncio locks"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """
    Registry of asyncio locks keyed by an arbitrary string (e.g. a user id).

    Callers for the same key run one at a time; different keys never contend.
    Locks are held weakly so idle keys are released once no caller holds them.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every WalletService in this process
wallet_locks = KeyedLock()
