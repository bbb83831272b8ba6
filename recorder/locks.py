"""
locks.py — Per-session mutual exclusion for event appends.

Appends for the same session_id are serialized; different sessions never wait
on each other. Two interchangeable backends share the hold() interface:

  SessionLocks       — asyncio.Lock per key, for a single server process
  RedisSessionLocks  — redis-py asyncio Lock, for several processes sharing one datastore

The append transaction (sequence reservation + inserts + commit) runs inside
hold(), so a second writer only starts after the first one's rows are durable.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import redis.asyncio as aioredis

from recorder.config import settings

logger = logging.getLogger(__name__)

LOCK_PREFIX = "session-lock"
LOCK_TIMEOUT: float = 30.0           # seconds a Redis lock may be held before auto-release
LOCK_BLOCKING_TIMEOUT: float = 10.0  # seconds to wait for a Redis lock before giving up


class SessionLocks:
    """
    In-process keyed lock registry.

    Entries are reference counted and dropped once no coroutine holds or waits
    on them, so the registry does not grow with the number of sessions seen.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                del self._waiters[session_id]
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


class RedisSessionLocks:
    """Keyed lock backed by Redis so every worker process sees the same owner."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            f"{LOCK_PREFIX}:{session_id}",
            timeout=LOCK_TIMEOUT,
            blocking_timeout=LOCK_BLOCKING_TIMEOUT,
        )
        async with lock:
            yield


async def create_session_locks(redis_url: Optional[str] = None):
    """
    Build the lock backend for this process.
    Called once in FastAPI lifespan startup; stored on app.state.session_locks.
    Verifies Redis connectivity with PING before returning the shared backend.
    """
    url = settings.redis_url if redis_url is None else redis_url
    if not url:
        logger.info("Session append locks: in-process")
        return SessionLocks(), None
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True, max_connections=20)
    await client.ping()
    logger.info("Session append locks: Redis at %s", url)
    return RedisSessionLocks(client), client
