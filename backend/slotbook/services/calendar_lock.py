"""Per-calendar mutual exclusion for the reservation write path.

Every reserve/reschedule/transition runs its check-then-write sequence
while holding the lock of the calendar it touches, so two writers on the
same provider/location/member can never interleave. The booking table
constraints (partial unique index, overlap exclusion on PostgreSQL) stay in
place as a backstop.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Dict, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import LockError

from slotbook.config import Settings
from slotbook.exceptions import ConflictError

logger = logging.getLogger(__name__)


class CalendarLocks(Protocol):
    def hold(self, key: str) -> AsyncContextManager[None]:
        ...


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class LocalCalendarLocks:
    """In-process locks, one per calendar key. Enough for a single worker."""
    
    def __init__(self, blocking_timeout: float = 5.0):
        self.blocking_timeout = blocking_timeout
        self._entries: Dict[str, _LockEntry] = {}
    
    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.setdefault(key, _LockEntry())
        entry.users += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self.blocking_timeout)
            except asyncio.TimeoutError:
                raise ConflictError(f"Calendar {key} is busy, retry")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)


class RedisCalendarLocks:
    """Redis locks shared by every worker talking to the same Redis."""
    
    def __init__(
        self,
        redis: aioredis.Redis,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
        prefix: str = "slotbook:calendar:",
    ):
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.prefix = prefix
    
    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            f"{self.prefix}{key}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not await lock.acquire():
            raise ConflictError(f"Calendar {key} is busy, retry")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired mid-section; the booking constraints still apply
                logger.warning("Calendar lock %s expired before release", key)


def build_calendar_locks(settings: Settings, redis: Optional[aioredis.Redis] = None) -> CalendarLocks:
    """Pick the lock backend configured by LOCK_BACKEND.
    
    The redis backend uses the caller's shared client so it is closed with
    the rest of the connections at shutdown.
    """
    if settings.LOCK_BACKEND == "redis":
        if redis is None:
            raise ValueError("LOCK_BACKEND=redis needs a Redis client")
        return RedisCalendarLocks(
            redis,
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_BLOCKING_TIMEOUT_SECONDS,
        )
    if settings.LOCK_BACKEND != "local":
        raise ValueError(f"Unknown LOCK_BACKEND '{settings.LOCK_BACKEND}'")
    if settings.WEB_CONCURRENCY > 1:
        # In-process locks cannot see the other workers
        raise ValueError("LOCK_BACKEND=local only supports a single worker, use redis")
    return LocalCalendarLocks(blocking_timeout=settings.LOCK_BLOCKING_TIMEOUT_SECONDS)
