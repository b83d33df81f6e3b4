from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional


class AsyncReentrantLock:
    """Minimal re-entrant asyncio lock used to serialize work on one working tree."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task[Any]] = None
        self._depth = 0
        self._waiting = 0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def idle(self) -> bool:
        return not self._lock.locked() and self._waiting == 0

    async def acquire(self) -> None:
        current = asyncio.current_task()
        if current is None:
            raise RuntimeError("AsyncReentrantLock requires a running task.")
        if self._owner is current:
            self._depth += 1
            return
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        self._owner = current
        self._depth = 1

    def release(self) -> None:
        current = asyncio.current_task()
        if current is None or self._owner is not current:
            raise RuntimeError("AsyncReentrantLock released by non-owner task.")
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()

    async def __aenter__(self) -> "AsyncReentrantLock":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.release()


class SiteLockRegistry:
    """One re-entrant lock per site id, shared by every path touching a working tree."""

    def __init__(self) -> None:
        self._locks: Dict[str, AsyncReentrantLock] = {}

    def for_site(self, site_id: str) -> AsyncReentrantLock:
        lock = self._locks.get(site_id)
        if lock is None:
            lock = AsyncReentrantLock()
            self._locks[site_id] = lock
        return lock

    def is_locked(self, site_id: str) -> bool:
        lock = self._locks.get(site_id)
        return bool(lock and lock.locked)

    def discard(self, site_id: str) -> bool:
        """Drop an idle lock; a held or awaited lock is kept so its waiters stay ordered."""
        lock = self._locks.get(site_id)
        if lock is None or not lock.idle:
            return False
        del self._locks[site_id]
        return True
