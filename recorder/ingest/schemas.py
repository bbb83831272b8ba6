"""
schemas.py — Ingestion Pydantic v2 data contracts.

Defines:
  - Viewport, SessionMetadata  (sent once when the recorder starts)
  - EventBatch                 (sent on every client flush)
  - IngestAck                  (success acknowledgement)
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

Wire field names are camelCase (sessionId, userAgent) to match the browser
recorder; Python attributes are snake_case via aliases.
Event records are opaque: typed as Any and never inspected.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Inbound messages
# ---------------------------------------------------------------------------

class Viewport(_WireModel):
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)


class SessionMetadata(_WireModel):
    """
    Metadata message. Creates (or refreshes) the session row.

    Only session_id is mandatory; the browser may legitimately send an empty
    title. timestamp is the client clock at capture start and is not stored.
    """
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    url: str = ""
    title: str = ""
    user_agent: str = Field(default="", alias="userAgent")
    timestamp: Optional[str] = None
    viewport: Viewport = Field(default_factory=Viewport)


class EventBatch(_WireModel):
    """Events message: one flush worth of records, in capture order."""
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    events: List[Any] = Field(default_factory=list)
    timestamp: Optional[str] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class IngestAck(_WireModel):
    status: str = "ok"
    created: Optional[bool] = None
    event_count: Optional[int] = Field(default=None, alias="eventCount")


class ErrorDetail(BaseModel):
    """Single field-level validation error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "sessionId"
    issue: str                     # Human-readable description of the problem


class ErrorBody(BaseModel):
    """Error envelope body."""
    model_config = ConfigDict(extra="forbid")

    code: str                                      # BAD_REQUEST, NOT_FOUND, etc.
    message: str                                   # High-level error description
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error response format for all endpoints.

    Structure: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody
