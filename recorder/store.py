"""
store.py — Data access facade for recorded sessions.

Provides a consistent, high-level API for persisting and retrieving sessions.
All routes use these functions; no route touches SQLAlchemy directly.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - No raw SQL: ORM / Core expression queries only
  - Logs only session_id and counts, never event payloads (they contain page content)
  - Returns Pydantic objects (not ORM instances) so callers are persistence-agnostic
  - Uses flush() (not commit()) — caller / get_db() dependency handles commit

Event log invariants:
  - The log only grows. Metadata re-submission never touches event_count or events.
  - seq values are reserved by a single atomic UPDATE ... RETURNING on the
    session row, so two appends can never be handed the same range.
"""
import logging
from typing import Any, Optional, Sequence, Tuple

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from recorder.admin.schemas import PAGE_SIZE, SessionDetail, SessionPage, SessionSummary
from recorder.ingest.schemas import SessionMetadata
from recorder.models.session import SessionORM, utcnow
from recorder.models.session_event import SessionEventORM

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when an operation names a session_id that was never registered."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


def _dialect_insert(db: AsyncSession):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Unsupported database dialect: {name}")


# ---------------------------------------------------------------------------
# Ingestion operations
# ---------------------------------------------------------------------------

async def register_session(
    db: AsyncSession,
    metadata: SessionMetadata,
) -> Tuple[SessionSummary, bool]:
    """
    Create the session row, or refresh the metadata of an existing one.

    Re-registration is non-destructive: url, title, user_agent and viewport are
    overwritten; created_at, updated_at, event_count and the event log are kept.
    Implemented as INSERT ... ON CONFLICT DO UPDATE so two racing first
    submissions cannot fail on the unique constraint.

    Returns (session, created).
    """
    existing = await db.scalar(
        select(SessionORM.id).where(SessionORM.session_id == metadata.session_id)
    )
    fields = {
        "url": metadata.url,
        "title": metadata.title,
        "user_agent": metadata.user_agent,
        "viewport": metadata.viewport.model_dump(),
    }
    now = utcnow()
    stmt = _dialect_insert(db)(SessionORM).values(
        session_id=metadata.session_id,
        event_count=0,
        created_at=now,
        updated_at=now,
        **fields,
    )
    stmt = stmt.on_conflict_do_update(index_elements=["session_id"], set_=fields)
    await db.execute(stmt)
    await db.flush()

    orm = await db.scalar(
        select(SessionORM)
        .where(SessionORM.session_id == metadata.session_id)
        .execution_options(populate_existing=True)
    )
    created = existing is None
    logger.info(
        "%s session session_id=%s",
        "Registered" if created else "Refreshed metadata for",
        metadata.session_id,
    )
    return SessionSummary.model_validate(orm), created


async def append_events(
    db: AsyncSession,
    session_id: str,
    events: Sequence[Any],
) -> int:
    """
    Append a batch to the end of a session's event log, preserving batch order.

    Reserves seq range (count+1 .. count+n) and bumps updated_at in one
    statement, then inserts the rows. Raises SessionNotFoundError if the
    session was never registered; appends never create sessions.

    Returns the log length after the append.
    """
    n = len(events)
    now = utcnow()
    result = await db.execute(
        update(SessionORM)
        .where(SessionORM.session_id == session_id)
        .values(event_count=SessionORM.event_count + n, updated_at=now)
        .returning(SessionORM.event_count)
        .execution_options(synchronize_session=False)
    )
    new_count = result.scalar_one_or_none()
    if new_count is None:
        raise SessionNotFoundError(session_id)

    first_seq = new_count - n + 1
    if events:
        await db.execute(
            insert(SessionEventORM),
            [
                {
                    "session_id": session_id,
                    "seq": first_seq + offset,
                    "payload": event,
                    "created_at": now,
                }
                for offset, event in enumerate(events)
            ],
        )
    await db.flush()
    logger.info(
        "Appended events session_id=%s batch=%d total=%d",
        session_id, n, new_count,
    )
    return new_count


# ---------------------------------------------------------------------------
# Retrieval operations
# ---------------------------------------------------------------------------

async def list_sessions(
    db: AsyncSession,
    page: int = 1,
    page_size: int = PAGE_SIZE,
) -> SessionPage:
    """
    One page of sessions that have recorded at least one event,
    most recently updated first. page < 1 is treated as 1; a page past the
    end returns an empty list with the usual counters.
    """
    page = max(page, 1)
    has_events = SessionORM.event_count > 0

    total = await db.scalar(
        select(func.count()).select_from(SessionORM).where(has_events)
    ) or 0
    offset = (page - 1) * page_size
    if offset >= total:
        # past the last page
        return SessionPage(sessions=[], total=total, page=page, limit=page_size)

    result = await db.execute(
        select(SessionORM)
        .where(has_events)
        .order_by(SessionORM.updated_at.desc(), SessionORM.id.desc())
        .limit(page_size)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    rows = result.scalars().all()
    return SessionPage(
        sessions=[SessionSummary.model_validate(row) for row in rows],
        total=total,
        page=page,
        limit=page_size,
    )


async def get_session(
    db: AsyncSession,
    session_id: str,
) -> Optional[SessionDetail]:
    """
    Retrieve metadata plus the full event log in capture order.
    Returns None if no session found (caller raises 404).
    """
    orm = await db.scalar(
        select(SessionORM).where(SessionORM.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    if orm is None:
        return None
    result = await db.execute(
        select(SessionEventORM.payload)
        .where(SessionEventORM.session_id == session_id)
        .order_by(SessionEventORM.seq.asc())
    )
    events = list(result.scalars().all())
    summary = SessionSummary.model_validate(orm)
    return SessionDetail(**summary.model_dump(), events=events)
