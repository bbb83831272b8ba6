"""
models/session_event.py — SQLAlchemy ORM for the append-only event log.

Table: session_events
One row per opaque capture-engine record. (session_id, seq) is unique and seq
is assigned from sessions.event_count inside the append transaction, so the
log is read back in capture order with ORDER BY seq.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from recorder.database import Base, JSONType
from recorder.models.session import utcnow


class SessionEventORM(Base):
    """
    ORM model for a single recorded event.

    seq:     1-based position in the session's log.
    payload: the event record exactly as the client sent it. Never inspected.
    """
    __tablename__ = "session_events"
    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_session_events_session_seq"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning session (sessions.session_id)",
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[Any] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
