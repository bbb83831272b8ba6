"""
models/session.py — SQLAlchemy ORM model for recorded page-visit sessions.

Table: sessions
One row per client-generated session_id. Metadata is captured once by the
metadata message; event_count and updated_at advance on every event append.
The events themselves live in session_events (append-only, ordered by seq).
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recorder.database import Base, JSONType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionORM(Base):
    """
    ORM model for one recorded session.

    session_id:  opaque client identifier (session_<ms>_<base36>), the external key.
    viewport:    {"width": int, "height": int} captured at session start.
    event_count: length of the stored event log; also the last assigned seq.
                 Listing treats event_count == 0 as "no recording yet".
    """
    __tablename__ = "sessions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
        index=True,
        comment="Client-generated session identifier",
    )
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    viewport: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Viewport at session start: {width, height}",
    )
    event_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Number of events appended so far",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )


Index("idx_created_at", SessionORM.created_at.desc())
