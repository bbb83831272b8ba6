"""
End-to-end API tests for POST /api/sessions/metadata and POST /api/sessions/events.

Tests the full stack: HTTP request → schema validation → per-session lock →
store → SQLite → HTTP response. Retrieval goes through the admin API with
credentials to observe what was stored.
"""
from __future__ import annotations

import asyncio
import logging

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recorder.database import get_db
from recorder.main import app
from recorder.models import SessionORM
from recorder.tests.conftest import ADMIN_AUTH

METADATA = {
    "sessionId": "s1",
    "url": "https://a",
    "title": "A",
    "userAgent": "Mozilla/5.0 (pytest)",
    "timestamp": "2026-10-18T12:00:00.000Z",
    "viewport": {"width": 800, "height": 600},
}


async def _register(client: AsyncClient, session_id: str = "s1") -> None:
    response = await client.post("/api/sessions/metadata", json={**METADATA, "sessionId": session_id})
    assert response.status_code == 200, response.text


async def _append(client: AsyncClient, events: list, session_id: str = "s1"):
    return await client.post(
        "/api/sessions/events",
        json={"sessionId": session_id, "events": events, "timestamp": "2026-10-18T12:00:05.000Z"},
    )


async def _stored_events(client: AsyncClient, session_id: str = "s1") -> list:
    response = await client.get(f"/api/sessions/{session_id}", auth=ADMIN_AUTH)
    assert response.status_code == 200, response.text
    return response.json()["events"]


# ---------------------------------------------------------------------------
# Test Group 1: metadata
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_metadata_creates_session(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/metadata", json=METADATA)
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "created": True}


@pytest.mark.asyncio
async def test_metadata_resubmission_is_non_destructive(client: AsyncClient) -> None:
    await _register(client)
    await _append(client, [{"n": 1}, {"n": 2}])

    response = await client.post("/api/sessions/metadata", json={**METADATA, "title": "Again"})
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "created": False}

    detail = (await client.get("/api/sessions/s1", auth=ADMIN_AUTH)).json()
    assert detail["title"] == "Again"
    assert detail["events"] == [{"n": 1}, {"n": 2}]


@pytest.mark.asyncio
async def test_metadata_invalid_json_is_bad_request(client: AsyncClient) -> None:
    response = await client.post(
        "/api/sessions/metadata",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_metadata_missing_session_id_is_validation_error(client: AsyncClient, db) -> None:
    body = {k: v for k, v in METADATA.items() if k != "sessionId"}
    response = await client.post("/api/sessions/metadata", json=body)
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "sessionId" in {d["field"] for d in error["details"]}
    assert await db.scalar(select(func.count()).select_from(SessionORM)) == 0


@pytest.mark.asyncio
async def test_metadata_method_not_allowed(client: AsyncClient) -> None:
    response = await client.put("/api/sessions/metadata", json=METADATA)
    assert response.status_code == 405
    assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"


# ---------------------------------------------------------------------------
# Test Group 2: events
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_scenario_two_batches_replay_in_order(client: AsyncClient) -> None:
    """metadata s1 → [e1, e2] → [e3] → retrieval returns [e1, e2, e3]."""
    await _register(client)
    first = await _append(client, [{"id": "e1"}, {"id": "e2"}])
    second = await _append(client, [{"id": "e3"}])

    assert first.json() == {"status": "ok", "eventCount": 2}
    assert second.json() == {"status": "ok", "eventCount": 3}
    assert await _stored_events(client) == [{"id": "e1"}, {"id": "e2"}, {"id": "e3"}]


@pytest.mark.asyncio
async def test_many_sequential_batches_keep_submission_order(client: AsyncClient) -> None:
    await _register(client)
    expected = []
    for batch_no in range(6):
        batch = [{"batch": batch_no, "i": i} for i in range(batch_no + 1)]
        expected.extend(batch)
        assert (await _append(client, batch)).status_code == 200

    assert await _stored_events(client) == expected


@pytest.mark.asyncio
async def test_events_for_unknown_session_is_not_found(client: AsyncClient, db) -> None:
    response = await _append(client, [{"id": "e1"}], session_id="never-registered")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"

    missing = await client.get("/api/sessions/never-registered", auth=ADMIN_AUTH)
    assert missing.status_code == 404
    # no implicit create
    assert await db.scalar(select(func.count()).select_from(SessionORM)) == 0


@pytest.mark.asyncio
async def test_events_invalid_json_is_bad_request(client: AsyncClient) -> None:
    await _register(client)
    response = await client.post(
        "/api/sessions/events",
        content=b'{"sessionId": "s1", "events": [',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert await _stored_events(client) == []


@pytest.mark.asyncio
async def test_events_must_be_a_list(client: AsyncClient) -> None:
    await _register(client)
    response = await client.post("/api/sessions/events", json={"sessionId": "s1", "events": {"a": 1}})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_empty_batch_is_accepted_and_keeps_session_unlisted(client: AsyncClient) -> None:
    await _register(client)
    response = await _append(client, [])
    assert response.status_code == 200
    assert response.json()["eventCount"] == 0

    listing = (await client.get("/api/sessions", auth=ADMIN_AUTH)).json()
    assert listing["total"] == 0


@pytest.mark.asyncio
async def test_concurrent_batches_for_one_session_lose_nothing(client: AsyncClient) -> None:
    """Two simultaneous appends: union of both, each batch contiguous."""
    await _register(client)
    batch_a = [{"src": "a", "i": i} for i in range(30)]
    batch_b = [{"src": "b", "i": i} for i in range(30)]

    responses = await asyncio.gather(_append(client, batch_a), _append(client, batch_b))
    assert all(r.status_code == 200 for r in responses)
    assert sorted(r.json()["eventCount"] for r in responses) == [30, 60]

    stored = await _stored_events(client)
    assert stored in (batch_a + batch_b, batch_b + batch_a)


@pytest.mark.asyncio
async def test_concurrent_batches_for_different_sessions(client: AsyncClient) -> None:
    await _register(client, "s1")
    await _register(client, "s2")
    await asyncio.gather(
        *[_append(client, [{"s": sid, "i": i}], session_id=sid) for i in range(5) for sid in ("s1", "s2")]
    )
    for sid in ("s1", "s2"):
        events = await _stored_events(client, sid)
        assert sorted(e["i"] for e in events) == [0, 1, 2, 3, 4]
        assert {e["s"] for e in events} == {sid}


# ---------------------------------------------------------------------------
# Test Group 3: open access for embedding pages
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ingestion_needs_no_credentials(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/metadata", json=METADATA)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cors_preflight_from_any_origin(client: AsyncClient) -> None:
    response = await client.options(
        "/api/sessions/events",
        headers={
            "Origin": "https://some-customer-site.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


@pytest.mark.asyncio
async def test_cors_header_on_simple_post(client: AsyncClient) -> None:
    response = await client.post(
        "/api/sessions/metadata",
        json=METADATA,
        headers={"Origin": "https://some-customer-site.example"},
    )
    assert response.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# Test Group 4: datastore failures
# ---------------------------------------------------------------------------

class _FailingCommitSession(AsyncSession):
    async def commit(self) -> None:
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


@pytest.mark.asyncio
async def test_storage_failure_is_500_and_log_unchanged(client: AsyncClient, engine, caplog) -> None:
    await _register(client)
    await _append(client, [{"id": "e1"}])

    failing_factory = async_sessionmaker(bind=engine, class_=_FailingCommitSession, expire_on_commit=False)

    async def _failing_db():
        async with failing_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    working_db = app.dependency_overrides[get_db]
    app.dependency_overrides[get_db] = _failing_db
    try:
        with caplog.at_level(logging.ERROR, logger="recorder.main"):
            response = await _append(client, [{"id": "e2"}, {"id": "e3"}])
    finally:
        app.dependency_overrides[get_db] = working_db

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "STORAGE_ERROR"
    assert "disk I/O error" not in response.text
    assert any("Storage error" in record.getMessage() for record in caplog.records)

    # the failed batch was rolled back, nothing half-applied
    detail = (await client.get("/api/sessions/s1", auth=ADMIN_AUTH)).json()
    assert detail["events"] == [{"id": "e1"}]
    assert detail["eventCount"] == 1
