"""Per-session lock registry, in-process and Redis-backed."""
import asyncio

import fakeredis
import pytest

import recorder.locks as locks_module
from recorder.locks import LOCK_PREFIX, RedisSessionLocks, SessionLocks, create_session_locks


@pytest.mark.asyncio
async def test_same_session_is_serialized() -> None:
    locks = SessionLocks()
    trace = []

    async def writer(name: str) -> None:
        async with locks.hold("s1"):
            trace.append(f"{name}-in")
            await asyncio.sleep(0.01)
            trace.append(f"{name}-out")

    await asyncio.gather(writer("a"), writer("b"))
    assert trace in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_different_sessions_do_not_wait() -> None:
    locks = SessionLocks()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def slow() -> None:
        async with locks.hold("s1"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(slow())
    await inside.wait()
    # would hang if s2 shared s1's lock
    async with locks.hold("s2"):
        assert len(locks) == 2
    release.set()
    await task


@pytest.mark.asyncio
async def test_registry_drops_idle_entries() -> None:
    locks = SessionLocks()
    async with locks.hold("s1"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_registry_releases_on_error() -> None:
    locks = SessionLocks()
    with pytest.raises(RuntimeError):
        async with locks.hold("s1"):
            raise RuntimeError("append failed")
    assert len(locks) == 0
    async with locks.hold("s1"):
        pass


@pytest.mark.asyncio
async def test_empty_redis_url_selects_in_process_backend() -> None:
    backend, client = await create_session_locks("")
    assert isinstance(backend, SessionLocks)
    assert client is None


# ---------------------------------------------------------------------------
# Redis backend: two clients on one server stand in for two worker processes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_redis_locks_serialize_across_clients() -> None:
    server = fakeredis.FakeServer()
    workers = [
        RedisSessionLocks(fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        for _ in range(2)
    ]
    trace = []

    async def writer(locks: RedisSessionLocks, name: str) -> None:
        async with locks.hold("s1"):
            trace.append(f"{name}-in")
            await asyncio.sleep(0.05)
            trace.append(f"{name}-out")

    await asyncio.gather(writer(workers[0], "a"), writer(workers[1], "b"))
    assert trace in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_redis_lock_key_is_released() -> None:
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    locks = RedisSessionLocks(client)
    async with locks.hold("s1"):
        assert await client.exists(f"{LOCK_PREFIX}:s1") == 1
    assert await client.exists(f"{LOCK_PREFIX}:s1") == 0


@pytest.mark.asyncio
async def test_redis_url_selects_redis_backend(monkeypatch) -> None:
    fake = fakeredis.FakeAsyncRedis(decode_responses=True)
    seen_urls = []

    def from_url(url, **kwargs):
        seen_urls.append(url)
        return fake

    monkeypatch.setattr(locks_module.aioredis, "from_url", from_url)
    backend, client = await create_session_locks("redis://cache.internal:6379/0")

    assert isinstance(backend, RedisSessionLocks)
    assert client is fake
    assert seen_urls == ["redis://cache.internal:6379/0"]
