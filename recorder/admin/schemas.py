"""
schemas.py — Listing / retrieval response contracts.

Defines:
  - SessionSummary  (one row of GET /api/sessions)
  - SessionPage     (paginated listing envelope)
  - SessionDetail   (GET /api/sessions/{sessionId}: metadata + ordered event log)

Serialized with by_alias=True so the replay UI sees camelCase keys.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from recorder.ingest.schemas import Viewport

PAGE_SIZE = 20


class SessionSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    session_id: str = Field(alias="sessionId")
    url: str
    title: str
    user_agent: str = Field(alias="userAgent")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    viewport: Viewport = Field(default_factory=Viewport)
    event_count: int = Field(default=0, alias="eventCount")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        """SQLite hands back naive datetimes; every stored timestamp is UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class SessionDetail(SessionSummary):
    """Full record for replay. events is never None; an empty log is []."""
    events: List[Any] = Field(default_factory=list)


class SessionPage(BaseModel):
    sessions: List[SessionSummary]
    total: int
    page: int
    limit: int = PAGE_SIZE

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pages(self) -> int:
        """ceil(total / limit), 0 when there is nothing to list."""
        return math.ceil(self.total / self.limit) if self.limit else 0
