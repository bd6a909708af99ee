"""
Job Scheduler

Runs session jobs (ticks and close-all jobs) as fire-and-forget asyncio tasks.
Each job opens its own database session, so it outlives the HTTP request that
scheduled it. Jobs register with the shutdown manager so shutdown can wait
for them.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from fxtrader.config import settings
from fxtrader.database import async_session_maker
from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig
from fxtrader.exchange_clients.factory import get_broker_client
from fxtrader.services.shutdown_manager import ShutdownInProgressError, ShutdownManager, shutdown_manager
from fxtrader.trading_engine.session_evaluator import (
    close_session_positions,
    evaluate_session,
    tick_active_sessions,
)

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Schedules session evaluations and close-all jobs.

    Broker client and configuration are resolved from settings on first use
    unless injected (tests inject doubles).
    """

    def __init__(
        self,
        session_maker: Optional[Callable] = None,
        broker: Optional[BrokerClient] = None,
        broker_config: Optional[BrokerConfig] = None,
        manager: Optional[ShutdownManager] = None,
    ):
        self._session_maker = session_maker or async_session_maker
        self._broker = broker
        self._broker_config = broker_config
        self._manager = manager or shutdown_manager
        self._tasks: Set[asyncio.Task] = set()

    @property
    def broker_config(self) -> BrokerConfig:
        if self._broker_config is None:
            self._broker_config = settings.broker_config()
        return self._broker_config

    @property
    def broker(self) -> BrokerClient:
        if self._broker is None:
            self._broker = get_broker_client(self.broker_config)
        return self._broker

    @property
    def session_maker(self) -> Callable:
        return self._session_maker

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        # Keep a reference until done, the event loop only holds weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_evaluation(self, session_id: int, reason: Optional[str] = None):
        """Evaluate one session now, in a fresh database session."""
        try:
            async with self._manager.job_in_flight(f"tick:{session_id}"):
                async with self._session_maker() as db:
                    return await evaluate_session(db, session_id, self.broker, self.broker_config, reason=reason)
        except ShutdownInProgressError:
            logger.warning(f"Skipping tick for session {session_id} ({reason}): shutdown in progress")
        except Exception as e:
            logger.error(f"Tick job for session {session_id} failed: {e}", exc_info=True)
        return None

    async def run_close_positions(self, session_id: int, reason: Optional[str] = None) -> int:
        """Close every open position of one session now, in a fresh database session."""
        try:
            async with self._manager.job_in_flight(f"close-all:{session_id}"):
                async with self._session_maker() as db:
                    return await close_session_positions(db, session_id, self.broker, self.broker_config, reason=reason)
        except ShutdownInProgressError:
            logger.warning(f"Skipping close-all for session {session_id} ({reason}): shutdown in progress")
        except Exception as e:
            logger.error(f"Close-all job for session {session_id} failed: {e}", exc_info=True)
        return 0

    async def run_sweep(self, reason: Optional[str] = None) -> int:
        """Evaluate every running session, one after another."""
        async with self._manager.job_in_flight("sweep"):
            async with self._session_maker() as db:
                return await tick_active_sessions(db, self.broker, self.broker_config, reason=reason)

    def schedule_evaluation(self, session_id: int, reason: Optional[str] = None) -> asyncio.Task:
        logger.debug(f"Scheduling tick for session {session_id} ({reason})")
        return self._spawn(self.run_evaluation(session_id, reason), name=f"tick-session-{session_id}")

    def schedule_close_positions(self, session_id: int, reason: Optional[str] = None) -> asyncio.Task:
        logger.debug(f"Scheduling close-all for session {session_id} ({reason})")
        return self._spawn(self.run_close_positions(session_id, reason), name=f"close-session-{session_id}")

    async def wait_idle(self):
        """Wait for every scheduled job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global singleton instance
job_scheduler = JobScheduler()
