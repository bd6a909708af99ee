#!/usr/bin/env python3
"""
Run one tick for a trading session immediately, outside the API.

Uses the same database and broker settings as the server (.env). The session
must be running, otherwise the tick does nothing; pass --start to start it first.

    python scripts/evaluate_session_now.py 3
    python scripts/evaluate_session_now.py 3 --start
"""
import argparse
import asyncio

from fxtrader.constants import SESSION_RUNNING, TICK_REASON_MANUAL_TICK
from fxtrader.database import async_session_maker, init_db
from fxtrader.exchange_clients.factory import close_broker_client
from fxtrader.services import session_service
from fxtrader.services.job_scheduler import JobScheduler
from fxtrader.trading_engine.session_logger import list_logs


async def evaluate_now(session_id: int, start: bool) -> bool:
    """Tick a session once and print the outcome. Returns False if nothing ran."""
    await init_db()
    scheduler = JobScheduler()

    async with async_session_maker() as db:
        session = await session_service.require_session(db, session_id)
        starting = session.status != SESSION_RUNNING
        if starting:
            if not start:
                print(f"Session {session_id} is {session.status}; pass --start to start it first")
                return False
            # Logs the start and schedules the manual-start tick
            await session_service.start_session(db, session_id, scheduler=scheduler)
            print(f"Session {session_id} started")

    if starting:
        await scheduler.wait_idle()
    else:
        await scheduler.run_evaluation(session_id, reason=TICK_REASON_MANUAL_TICK)

    async with async_session_maker() as db:
        session = await session_service.require_session(db, session_id)
        if session.last_short_ma is None or session.last_long_ma is None:
            print(f"Status: {session.status}  no signal computed (see session log below)")
        else:
            print(
                f"Status: {session.status}  signal: {session.last_signal}  "
                f"short MA: {session.last_short_ma:.5f}  long MA: {session.last_long_ma:.5f}  "
                f"price: {session.last_price:.5f}"
            )

        print("\nLatest log entries:")
        for entry in reversed(await list_logs(db, session_id, limit=10)):
            print(f"  {entry.created_at:%Y-%m-%d %H:%M:%S} [{entry.level}] {entry.message}")

    await close_broker_client()
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one trading session tick now")
    parser.add_argument("session_id", type=int, help="Session id")
    parser.add_argument("--start", action="store_true", help="Start the session if it is not running")
    args = parser.parse_args()
    asyncio.run(evaluate_now(args.session_id, args.start))
