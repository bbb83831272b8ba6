"""
models/__init__.py — imports all ORM models so Alembic's env.py
sees them via Base.metadata when generating migrations.

Import order matters: session_events holds a foreign key to sessions.
"""
from recorder.models.session import SessionORM
from recorder.models.session_event import SessionEventORM

__all__ = ["SessionORM", "SessionEventORM"]
