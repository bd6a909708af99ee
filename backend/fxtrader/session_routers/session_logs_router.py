"""
Session Logs Router

Read access to a session's positions and its audit log.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.database import get_db
from fxtrader.services import session_service
from fxtrader.session_routers.schemas import LogResponse, PositionResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="")


@router.get("/{session_id}/positions", response_model=List[PositionResponse])
async def get_session_positions(session_id: int, db: AsyncSession = Depends(get_db)):
    """All positions of a session, newest first"""
    return await session_service.get_session_positions(db, session_id)


@router.get("/{session_id}/logs", response_model=List[LogResponse])
async def get_session_logs(
    session_id: int,
    limit: int = Query(100, description="Entries to return, clamped to 1..500"),
    db: AsyncSession = Depends(get_db),
):
    """Newest log entries of a session"""
    return await session_service.get_session_logs(db, session_id, limit)
