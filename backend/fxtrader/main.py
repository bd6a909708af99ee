import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fxtrader.config import settings
from fxtrader.database import dispose_db, init_db
from fxtrader.exceptions import AppError
from fxtrader.exchange_clients.factory import close_broker_client
from fxtrader.routers import sessions_router, system_router
from fxtrader.routers.system_router import get_session_monitor
from fxtrader.services.job_scheduler import job_scheduler
from fxtrader.services.shutdown_manager import shutdown_manager
from fxtrader.session_monitor import SessionMonitor

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging(settings.log_level)

app = FastAPI(title="FX Crossover Trader")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session monitor - ticks every running session once per interval
session_monitor = SessionMonitor(interval_seconds=settings.monitor_interval_seconds, scheduler=job_scheduler)


def override_get_session_monitor():
    return session_monitor


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include all routers
app.include_router(sessions_router)
app.include_router(system_router.router)

app.dependency_overrides[get_session_monitor] = override_get_session_monitor


# Startup/Shutdown events
@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    await init_db()

    broker_config = job_scheduler.broker_config
    logger.info(f"Broker mode: {broker_config.mode}")

    if settings.monitor_enabled:
        await session_monitor.start_async()
    else:
        logger.info("Session monitor disabled - sessions only tick on demand")
    logger.info("Startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down - waiting for in-flight session jobs...")

    shutdown_result = await shutdown_manager.prepare_shutdown(timeout=settings.shutdown_timeout_seconds)
    if shutdown_result["ready"]:
        logger.info(shutdown_result["message"])
    else:
        logger.warning(shutdown_result["message"])

    await session_monitor.stop()
    await close_broker_client()
    await dispose_db()
    logger.info("Shutdown complete")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
