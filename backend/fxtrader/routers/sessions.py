"""
Session Management Router

Aggregates all session endpoints from the modular session routers.
"""

from fastapi import APIRouter

from fxtrader.session_routers import session_control_router
from fxtrader.session_routers import session_crud_router
from fxtrader.session_routers import session_logs_router

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

# Include all sub-routers
router.include_router(session_crud_router.router)
router.include_router(session_control_router.router)
router.include_router(session_logs_router.router)
