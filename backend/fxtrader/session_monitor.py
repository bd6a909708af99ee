"""
Session Monitor

Periodic sweep: every interval, evaluates each running session once.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fxtrader.constants import TICK_REASON_SCHEDULED
from fxtrader.services.job_scheduler import JobScheduler, job_scheduler
from fxtrader.services.shutdown_manager import ShutdownInProgressError
from fxtrader.trading_engine.session_evaluator import list_running_session_ids

logger = logging.getLogger(__name__)


class SessionMonitor:
    """
    Background loop ticking every running session.

    Sessions are evaluated one after another within a sweep; a failing sweep
    is logged and retried on the next interval.
    """

    def __init__(self, interval_seconds: int = 60, scheduler: Optional[JobScheduler] = None):
        """
        Initialize session monitor

        Args:
            interval_seconds: Seconds between sweeps (default: 60s)
            scheduler: Job scheduler whose broker and database are used
        """
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or job_scheduler
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.last_sweep_at: Optional[datetime] = None
        self.last_sweep_count = 0
        self._wake = asyncio.Event()

    async def sweep(self) -> int:
        """Evaluate every running session once. Returns how many were evaluated."""
        count = await self.scheduler.run_sweep(reason=TICK_REASON_SCHEDULED)
        self.last_sweep_at = datetime.utcnow()
        self.last_sweep_count = count
        if count:
            logger.info(f"Sweep evaluated {count} running session(s)")
        return count

    async def monitor_loop(self):
        """Main monitoring loop"""
        # self.running is set in start_async() to prevent a double start
        while self.running:
            try:
                await self.sweep()
            except ShutdownInProgressError:
                logger.info("Shutdown in progress, stopping sweeps")
                break
            except Exception as e:
                logger.error(f"Error in session monitor loop: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Session monitor stopped")

    async def start_async(self):
        """Start the monitoring task"""
        if self.running:
            logger.warning("Monitor already running, ignoring duplicate start")
            return
        self.running = True
        self._wake = asyncio.Event()
        self.task = asyncio.create_task(self.monitor_loop())
        logger.info(f"Session monitor started (interval {self.interval_seconds}s)")

    async def stop(self):
        """Stop the monitoring task"""
        self.running = False
        if self.task:
            # Wakes the loop from its sleep; a sweep in progress finishes first
            self._wake.set()
            await self.task
            self.task = None
            logger.info("Session monitor task stopped")

    async def get_status(self) -> Dict[str, Any]:
        """Get monitor status"""
        async with self.scheduler.session_maker() as db:
            running_ids = await list_running_session_ids(db)
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "running_sessions": len(running_ids),
            "session_ids": running_ids,
            "last_sweep_at": self.last_sweep_at.isoformat() if self.last_sweep_at else None,
            "last_sweep_count": self.last_sweep_count,
            "broker_mode": self.scheduler.broker_config.mode,
            "pending_jobs": self.scheduler.pending_count,
        }
