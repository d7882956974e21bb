from __future__ import annotations

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from deskwise.settings import settings

# Entries vanish once no holder or waiter references the lock.
_LOCKS: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()


def _lock_for(org_id: uuid.UUID, technician_id: str) -> asyncio.Lock:
    key = (str(org_id), technician_id)
    lock = _LOCKS.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _LOCKS[key] = lock
    return lock


def held_lock_count() -> int:
    return len(_LOCKS)


@asynccontextmanager
async def technician_booking_lock(org_id: uuid.UUID, technician_id: str) -> AsyncIterator[None]:
    """Serialize check-and-insert for one technician within this process."""
    if not settings.schedule_serialize_bookings:
        yield
        return
    lock = _lock_for(org_id, technician_id)
    async with lock:
        yield


def reset() -> None:
    _LOCKS.clear()
