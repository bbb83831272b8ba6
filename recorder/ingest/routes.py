"""
Ingestion HTTP routes — POST /api/sessions/metadata,
                        POST /api/sessions/events

Unauthenticated and CORS-open (see main.py): any page embedding the recorder
snippet must be able to reach them.

Both writes run under the per-session lock and commit before releasing it, so
concurrent batches for one session are applied one after another and none
is lost. Batches for different sessions proceed in parallel.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from recorder.database import get_db
from recorder.ingest.schemas import ErrorResponse, EventBatch, IngestAck, SessionMetadata
from recorder.store import SessionNotFoundError, append_events, register_session

router = APIRouter(prefix="/api/sessions", tags=["ingest"])
logger = logging.getLogger(__name__)


def _session_locks(request: Request):
    return request.app.state.session_locks


@router.post(
    "/metadata",
    response_model=IngestAck,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_metadata(
    body: SessionMetadata,
    db: AsyncSession = Depends(get_db),
    locks=Depends(_session_locks),
) -> IngestAck:
    """
    Register a session (first message from every recorder instance).

    Re-submitting metadata for a known sessionId refreshes url/title/userAgent/
    viewport and keeps every event already stored.
    """
    async with locks.hold(body.session_id):
        _, created = await register_session(db, body)
        await db.commit()
    return IngestAck(created=created)


@router.post(
    "/events",
    response_model=IngestAck,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_events(
    body: EventBatch,
    db: AsyncSession = Depends(get_db),
    locks=Depends(_session_locks),
) -> IngestAck:
    """
    Append one flushed batch to the session's log.

    Returns:
      200: {"status": "ok", "eventCount": <log length after append>}
      404: sessionId was never registered (no row is created)
    """
    async with locks.hold(body.session_id):
        try:
            count = await append_events(db, body.session_id, body.events)
        except SessionNotFoundError as exc:
            logger.info("Rejected batch for unknown session_id=%s", body.session_id)
            raise HTTPException(status_code=404, detail="Session not found") from exc
        await db.commit()
    return IngestAck(event_count=count)
