"""
Session Control Router

Handles session start, stop and manual tick requests.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.database import get_db
from fxtrader.services import session_service
from fxtrader.session_routers.schemas import SessionActionResponse, SessionResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="")


@router.post("/{session_id}/start", response_model=SessionActionResponse)
async def start_session(session_id: int, db: AsyncSession = Depends(get_db)):
    """Start a session; the first tick runs immediately"""
    session = await session_service.start_session(db, session_id)
    return SessionActionResponse(
        message=f"Session '{session.name}' is running",
        session=SessionResponse.model_validate(session),
    )


@router.post("/{session_id}/stop", response_model=SessionActionResponse)
async def stop_session(session_id: int, close_positions: bool = True, db: AsyncSession = Depends(get_db)):
    """Stop a session, closing its open positions unless close_positions=false"""
    session = await session_service.stop_session(db, session_id, close_positions=close_positions)
    note = " (closing open positions)" if close_positions else ""
    return SessionActionResponse(
        message=f"Session '{session.name}' stopped{note}",
        session=SessionResponse.model_validate(session),
    )


@router.post("/{session_id}/tick", response_model=SessionActionResponse, status_code=202)
async def tick_session(session_id: int, db: AsyncSession = Depends(get_db)):
    """Evaluate a session now instead of waiting for the next sweep"""
    session = await session_service.request_immediate_tick(db, session_id)
    logger.info(f"Manual tick requested for session '{session.name}' (ID: {session_id})")
    return SessionActionResponse(
        message=f"Tick scheduled for session '{session.name}'",
        session=SessionResponse.model_validate(session),
    )
