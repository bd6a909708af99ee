"""
API Routers

This package contains the FastAPI routers mounted by main.py.
"""

from fxtrader.routers.sessions import router as sessions_router
from fxtrader.routers import system_router

__all__ = [
    "sessions_router",
    "system_router",
]
