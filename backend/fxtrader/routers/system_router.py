"""
System API routes

Handles system-level endpoints:
- Root/health check
- Session monitor and broker mode status
"""

import logging

from fastapi import APIRouter, Depends

from fxtrader.services.shutdown_manager import shutdown_manager
from fxtrader.session_monitor import SessionMonitor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


# Dependencies - will be injected from main.py
def get_session_monitor() -> SessionMonitor:
    """Get session monitor - will be overridden in main.py"""
    raise NotImplementedError("Must override session_monitor dependency")


@router.get("/")
async def root():
    return {"message": "FX Crossover Trader API", "status": "running"}


@router.get("/api/system/monitor")
async def get_monitor_status(session_monitor: SessionMonitor = Depends(get_session_monitor)):
    """Session monitor state, broker mode and in-flight session jobs"""
    status = await session_monitor.get_status()
    status["shutdown"] = shutdown_manager.get_status()
    return status
