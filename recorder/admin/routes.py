"""
Admin HTTP routes — GET /api/sessions?page=N,
                     GET /api/sessions/{session_id},
                     GET /session/{session_id}   (replay view),
                     GET /                       (admin landing page)

Every route here requires HTTP Basic credentials (router-level dependency).
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from recorder.admin.auth import require_admin
from recorder.admin.schemas import SessionDetail
from recorder.admin.views import render_admin_page, render_replay_page
from recorder.config import settings
from recorder.database import get_db
from recorder.store import get_session, list_sessions

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


def parse_page(raw: Optional[str]) -> int:
    """Lenient page parsing: missing, non-numeric and < 1 all mean page 1."""
    try:
        page = int(raw) if raw is not None else 1
    except ValueError:
        page = 1
    return max(page, 1)


async def _load_session(db: AsyncSession, session_id: str) -> SessionDetail:
    detail = await get_session(db, session_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return detail


@router.get("/api/sessions")
async def sessions_index(
    page: Optional[str] = Query(default=None, description="1-based page number"),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Paginated listing of sessions with recorded events, newest activity first."""
    result = await list_sessions(db, parse_page(page))
    logger.info("Listed sessions page=%d total=%d", result.page, result.total)
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@router.get("/api/sessions/{session_id}")
async def session_detail(
    session_id: str,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Full session record including the ordered event log for replay."""
    detail = await _load_session(db, session_id)
    return JSONResponse(content=detail.model_dump(mode="json", by_alias=True))


@router.get("/session/{session_id}", response_class=HTMLResponse)
async def replay_view(
    session_id: str,
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    detail = await _load_session(db, session_id)
    return HTMLResponse(render_replay_page(detail, rrweb_js_name=settings.rrweb_js_name))


@router.get("/", response_class=HTMLResponse)
async def admin_landing() -> HTMLResponse:
    return HTMLResponse(render_admin_page())
