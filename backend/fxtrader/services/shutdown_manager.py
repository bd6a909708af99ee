"""
Graceful Shutdown Manager

Counts session jobs (ticks, close-all jobs, sweeps) that are still running so
the process can wait for them before exiting. A tick interrupted between the
broker fill and the local position record leaves an untracked broker trade behind.
"""

import asyncio
import logging
import time
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


class ShutdownInProgressError(RuntimeError):
    """Raised when a job tries to start after shutdown was requested."""


class ShutdownManager:
    """
    Tracks running session jobs by label.

    Usage:
        async with shutdown_manager.job_in_flight(f"tick:{session_id}"):
            await evaluate_session(...)

        await shutdown_manager.prepare_shutdown(timeout=30)
    """

    def __init__(self):
        self._shutting_down = False
        self._jobs: Counter = Counter()
        self._idle = asyncio.Event()
        self._idle.set()
        self._shutdown_requested_at: Optional[datetime] = None

    @property
    def in_flight_count(self) -> int:
        return sum(self._jobs.values())

    @asynccontextmanager
    async def job_in_flight(self, label: str = "job"):
        if self._shutting_down:
            raise ShutdownInProgressError(f"Cannot start {label} - shutdown in progress")
        self._jobs[label] += 1
        self._idle.clear()
        try:
            yield
        finally:
            self._jobs[label] -= 1
            if self._jobs[label] <= 0:
                del self._jobs[label]
            if not self._jobs:
                self._idle.set()

    async def prepare_shutdown(self, timeout: float = 30.0) -> dict:
        """
        Refuse new session jobs and wait for running ones to finish.

        Returns:
            dict with ready, in_flight_count, running_jobs, waited_seconds and message
        """
        self._shutting_down = True
        self._shutdown_requested_at = datetime.utcnow()
        started = time.monotonic()

        if self._jobs:
            logger.info(f"Waiting up to {timeout}s for session jobs: {', '.join(sorted(self._jobs))}")
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass

        waited = time.monotonic() - started
        if self._jobs:
            message = f"Timeout: {', '.join(sorted(self._jobs))} still running after {timeout}s"
            logger.warning(message)
        else:
            message = f"No session jobs running after {waited:.1f}s - ready for shutdown"
            logger.info(message)

        return {
            "ready": not self._jobs,
            "in_flight_count": self.in_flight_count,
            "running_jobs": sorted(self._jobs),
            "waited_seconds": round(waited, 3),
            "message": message,
        }

    def get_status(self) -> dict:
        return {
            "shutting_down": self._shutting_down,
            "in_flight_count": self.in_flight_count,
            "running_jobs": sorted(self._jobs),
            "shutdown_requested_at": self._shutdown_requested_at.isoformat() if self._shutdown_requested_at else None,
        }


# Global singleton instance
shutdown_manager = ShutdownManager()
