"""
Session CRUD Router

Handles session create, read and configuration update.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.database import get_db
from fxtrader.services import session_service
from fxtrader.session_routers.schemas import SessionConfig, SessionCreate, SessionResponse, SessionUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="")


@router.get("/defaults", response_model=SessionConfig)
async def get_default_config():
    """Configuration pre-filled for a new session"""
    return SessionConfig(**session_service.default_session_config())


@router.get("/", response_model=List[SessionResponse])
async def list_sessions(db: AsyncSession = Depends(get_db)):
    """Get all sessions, newest first"""
    return await session_service.list_sessions(db)


@router.post("/", response_model=SessionResponse, status_code=201)
async def create_session(session_data: SessionCreate, db: AsyncSession = Depends(get_db)):
    """Create a new session (stopped)"""
    return await session_service.create_session(db, session_data.model_dump())


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific session"""
    return await session_service.require_session(db, session_id)


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(session_id: int, session_update: SessionUpdate, db: AsyncSession = Depends(get_db)):
    """Replace a session's configuration; takes effect on the next tick"""
    return await session_service.update_session(db, session_id, session_update.model_dump())
