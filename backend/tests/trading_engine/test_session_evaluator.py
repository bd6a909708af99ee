"""
Tests for backend/fxtrader/trading_engine/session_evaluator.py

Covers:
- evaluate_session: lifecycle guards, insufficient data, analytics,
  open/close decisions, failure handling, per-session serialisation
- close_session_positions: close-all job
- list_running_session_ids / tick_active_sessions: the sweep
"""

import asyncio

import pytest
from sqlalchemy import select

from fxtrader.exceptions import BrokerConfigurationError, BrokerRequestError
from fxtrader.models import TraderLog, TraderPosition, TraderSession
from fxtrader.trading_engine.position_manager import create_position
from fxtrader.trading_engine.session_evaluator import (
    close_session_positions,
    evaluate_session,
    list_running_session_ids,
    tick_active_sessions,
)

RISING = [1.00, 1.00, 1.00, 1.00, 1.00, 1.10, 1.20]
FALLING = [1.20, 1.20, 1.20, 1.20, 1.20, 1.10, 1.00]


async def _logs(db, session_id):
    result = await db.execute(
        select(TraderLog).where(TraderLog.session_id == session_id).order_by(TraderLog.id)
    )
    return list(result.scalars().all())


async def _positions(db, session_id):
    result = await db.execute(
        select(TraderPosition).where(TraderPosition.session_id == session_id).order_by(TraderPosition.id)
    )
    return list(result.scalars().all())


class TestEvaluateSessionGuards:
    """Ticks that end before any decision"""

    @pytest.mark.asyncio
    async def test_stopped_session_is_noop(self, db_session, make_session, mock_broker, live_config):
        """A stopped session is not touched."""
        session = await make_session(status="stopped")

        assert await evaluate_session(db_session, session.id, mock_broker, live_config) is None

        mock_broker.get_candles.assert_not_called()
        assert await _logs(db_session, session.id) == []
        assert session.last_evaluation_time is None

    @pytest.mark.asyncio
    async def test_error_session_is_noop(self, db_session, make_session, mock_broker, live_config):
        session = await make_session(status="error", error_message="boom")

        assert await evaluate_session(db_session, session.id, mock_broker, live_config) is None
        mock_broker.get_candles.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_session_is_noop(self, db_session, mock_broker, live_config):
        assert await evaluate_session(db_session, 999, mock_broker, live_config) is None
        mock_broker.get_candles.assert_not_called()

    @pytest.mark.asyncio
    async def test_insufficient_candles_logs_one_warning(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Fewer complete closes than long_window: one warning, nothing else."""
        session = await make_session()
        # The incomplete last candle does not count: 3 usable closes for a window of 4
        mock_broker.get_candles.return_value = make_candles([1.0, 1.1, 1.2, 1.3], complete_last=False)

        assert await evaluate_session(db_session, session.id, mock_broker, live_config) is None

        logs = await _logs(db_session, session.id)
        assert len(logs) == 1
        assert logs[0].level == "warn"
        assert logs[0].message == "Not enough historical candles to evaluate strategy (have 3, need 4)"
        assert session.status == "running"
        assert session.last_price is None
        mock_broker.place_market_order.assert_not_called()


class TestEvaluateSessionDecisions:
    """Ticks that compute a signal"""

    @pytest.mark.asyncio
    async def test_requests_lookback_candles(self, db_session, make_session, make_candles, mock_broker, live_config):
        """Happy path: max(2*long, long+5) mid candles are requested."""
        session = await make_session()
        mock_broker.get_candles.return_value = make_candles([1.0] * 9)

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        mock_broker.get_candles.assert_awaited_once_with("EUR_USD", "M5", 9, price="M")

    @pytest.mark.asyncio
    async def test_analytics_and_analysis_log(self, db_session, make_session, make_candles, mock_broker, live_config):
        """Happy path: averages and signal persisted, analysis entry written."""
        session = await make_session(last_signal="long")
        mock_broker.get_candles.return_value = make_candles(RISING)

        result = await evaluate_session(db_session, session.id, mock_broker, live_config, reason="manual-tick")

        assert result.signal == "long"
        assert session.last_signal == "long"
        assert session.last_short_ma == pytest.approx(1.15)
        assert session.last_long_ma == pytest.approx(1.075)
        assert session.last_price == pytest.approx(1.2)
        assert session.last_evaluation_time is not None

        analysis = (await _logs(db_session, session.id))[0]
        assert analysis.level == "analysis"
        assert analysis.message == "Tick processed"
        assert analysis.details["signal"] == "long"
        assert analysis.details["previousSignal"] == "long"
        assert analysis.details["reason"] == "manual-tick"

    @pytest.mark.asyncio
    async def test_default_reason_is_scheduled(self, db_session, make_session, make_candles, mock_broker, live_config):
        session = await make_session()
        mock_broker.get_candles.return_value = make_candles([1.0] * 9)

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        assert (await _logs(db_session, session.id))[0].details["reason"] == "scheduled"

    @pytest.mark.asyncio
    async def test_paper_open_on_new_signal(self, db_session, make_session, make_candles, mock_broker, paper_config):
        """Paper mode: a new long signal opens a local position without any order call."""
        session = await make_session()
        mock_broker.get_candles.return_value = make_candles(RISING)

        await evaluate_session(db_session, session.id, mock_broker, paper_config)

        mock_broker.place_market_order.assert_not_called()
        mock_broker.get_open_trades.assert_not_called()
        positions = await _positions(db_session, session.id)
        assert len(positions) == 1
        assert positions[0].direction == "long"
        assert positions[0].entry_price == pytest.approx(1.2)
        assert positions[0].broker_trade_id is None

        messages = [log.message for log in await _logs(db_session, session.id)]
        assert messages == [
            "Tick processed",
            "Attempting to open new position",
            "Opened LONG position (100 units)",
        ]

    @pytest.mark.asyncio
    async def test_unchanged_signal_does_not_reopen(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Flat with the same signal as last tick: nothing is opened."""
        session = await make_session(last_signal="long")
        mock_broker.get_candles.return_value = make_candles(RISING)

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        mock_broker.place_market_order.assert_not_called()
        assert await _positions(db_session, session.id) == []

    @pytest.mark.asyncio
    async def test_matching_position_is_kept(self, db_session, make_session, make_candles, mock_broker, live_config):
        """Open long and long signal: nothing happens beyond reconciliation."""
        session = await make_session(last_signal="long")
        position = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        mock_broker.get_open_trades.return_value = [{"id": "T-1"}]
        mock_broker.get_candles.return_value = make_candles(RISING)

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        mock_broker.get_open_trades.assert_awaited_once()
        mock_broker.close_trade.assert_not_called()
        mock_broker.place_market_order.assert_not_called()
        assert position.status == "open"

    @pytest.mark.asyncio
    async def test_flip_closes_once_then_opens_once(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Open long, signal short: one close then one short open."""
        session = await make_session(last_signal="long")
        long_position = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        mock_broker.get_open_trades.return_value = [{"id": "T-1"}]
        mock_broker.place_market_order.return_value = {
            "orderFillTransaction": {"price": "1.00010", "tradeOpened": {"tradeID": "T-2"}},
        }
        mock_broker.get_candles.return_value = make_candles(FALLING)

        result = await evaluate_session(db_session, session.id, mock_broker, live_config)

        assert result.signal == "short"
        mock_broker.close_trade.assert_awaited_once_with("T-1")
        mock_broker.place_market_order.assert_awaited_once()
        assert mock_broker.place_market_order.call_args.kwargs["units"] == -100.0

        positions = await _positions(db_session, session.id)
        assert len(positions) == 2
        assert long_position.status == "closed"
        assert long_position.close_reason == "signal-flip"
        assert positions[1].direction == "short"
        assert positions[1].status == "open"
        assert positions[1].broker_trade_id == "T-2"

        logs = await _logs(db_session, session.id)
        assert [log.message for log in logs] == [
            "Tick processed",
            "Signal requires closing current position",
            f"Closed position {long_position.id} (signal-flip)",
            "Attempting to open new position",
            "Opened SHORT position (-100 units)",
        ]
        assert logs[1].details == {"signal": "short", "activeDirection": "long"}

    @pytest.mark.asyncio
    async def test_neutral_signal_closes_without_reopening(
        self, db_session, make_session, make_candles, mock_broker, paper_config
    ):
        """Open short, neutral signal: close with neutral-signal and stay flat."""
        session = await make_session(last_signal="short")
        position = await create_position(db_session, session, "short", -100, 1.0)
        mock_broker.get_candles.return_value = make_candles([1.0] * 9)

        result = await evaluate_session(db_session, session.id, mock_broker, paper_config)

        assert result.signal == "neutral"
        assert position.status == "closed"
        assert position.close_reason == "neutral-signal"
        assert position.exit_price == pytest.approx(1.0)
        mock_broker.place_market_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_broker_closed_position_not_reopened_on_same_signal(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Position stopped out at the broker: closed locally, no reopen on the same signal."""
        session = await make_session(last_signal="long")
        position = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        mock_broker.get_open_trades.return_value = []
        mock_broker.get_candles.return_value = make_candles(RISING)

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        assert position.status == "closed"
        assert position.close_reason == "broker-closed"
        mock_broker.close_trade.assert_not_called()
        mock_broker.place_market_order.assert_not_called()


class TestEvaluateSessionFailures:
    """Exceptions inside a tick"""

    @pytest.mark.asyncio
    async def test_failed_open_sets_error_status(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Order rejected: error status with message, no partial position."""
        session = await make_session()
        mock_broker.get_candles.return_value = make_candles(RISING)
        mock_broker.place_market_order.side_effect = BrokerRequestError(
            "OANDA request failed (400 Bad Request): MARKET_HALTED"
        )

        assert await evaluate_session(db_session, session.id, mock_broker, live_config) is None

        stored = await db_session.get(TraderSession, session.id)
        assert stored.status == "error"
        assert stored.error_message == "OANDA request failed (400 Bad Request): MARKET_HALTED"
        assert await _positions(db_session, session.id) == []

        last_log = (await _logs(db_session, session.id))[-1]
        assert last_log.level == "error"
        assert last_log.message == "Evaluation failed: OANDA request failed (400 Bad Request): MARKET_HALTED"

    @pytest.mark.asyncio
    async def test_failed_close_on_flip_keeps_position_open(
        self, db_session, make_session, make_candles, mock_broker, live_config
    ):
        """Broker close rejected on a flip: error status, position stays open, nothing opened."""
        session = await make_session(last_signal="long")
        session_id = session.id
        position = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        position_id = position.id
        mock_broker.get_open_trades.return_value = [{"id": "T-1"}]
        mock_broker.get_candles.return_value = make_candles(FALLING)
        mock_broker.close_trade.side_effect = BrokerRequestError(
            "OANDA request failed (404 Not Found): TRADE_DOESNT_EXIST"
        )

        assert await evaluate_session(db_session, session_id, mock_broker, live_config) is None

        stored = await db_session.get(TraderSession, session_id)
        assert stored.status == "error"
        assert stored.error_message == "OANDA request failed (404 Not Found): TRADE_DOESNT_EXIST"

        positions = await _positions(db_session, session_id)
        assert [p.id for p in positions] == [position_id]
        assert positions[0].status == "open"
        assert positions[0].close_reason is None
        mock_broker.place_market_order.assert_not_called()

        last_log = (await _logs(db_session, session_id))[-1]
        assert last_log.level == "error"
        assert last_log.message == "Evaluation failed: OANDA request failed (404 Not Found): TRADE_DOESNT_EXIST"

    @pytest.mark.asyncio
    async def test_missing_api_key_is_evaluation_failure(self, db_session, make_session, mock_broker, live_config):
        """Candle fetch without credentials moves the session to error."""
        session = await make_session()
        mock_broker.get_candles.side_effect = BrokerConfigurationError("Missing OANDA_API_KEY environment variable.")

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        stored = await db_session.get(TraderSession, session.id)
        assert stored.status == "error"
        assert "OANDA_API_KEY" in stored.error_message

    @pytest.mark.asyncio
    async def test_empty_exception_message_uses_class_name(
        self, db_session, make_session, mock_broker, live_config
    ):
        session = await make_session()
        mock_broker.get_candles.side_effect = RuntimeError()

        await evaluate_session(db_session, session.id, mock_broker, live_config)

        stored = await db_session.get(TraderSession, session.id)
        assert stored.error_message == "RuntimeError"


class TestSessionSerialisation:
    """Concurrent ticks for one session"""

    @pytest.mark.asyncio
    async def test_concurrent_ticks_open_one_position(
        self, session_maker, make_session, make_candles, mock_broker, paper_config
    ):
        """Two overlapping ticks: the second sees the first one's signal and does not reopen."""
        session = await make_session()
        candles = make_candles(RISING)

        async def slow_candles(*args, **kwargs):
            await asyncio.sleep(0.01)
            return candles

        mock_broker.get_candles.side_effect = slow_candles

        async def tick():
            async with session_maker() as db:
                await evaluate_session(db, session.id, mock_broker, paper_config)

        await asyncio.gather(tick(), tick())

        async with session_maker() as db:
            positions = await _positions(db, session.id)
        assert len(positions) == 1


class TestCloseSessionPositions:
    """Tests for close_session_positions()"""

    @pytest.mark.asyncio
    async def test_closes_live_and_paper_positions(self, db_session, make_session, mock_broker, live_config):
        """Happy path: broker trade closed at the fill, paper position at last price."""
        session = await make_session(status="stopped", last_price=1.3)
        live = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        paper = await create_position(db_session, session, "long", 100, 1.0)

        closed = await close_session_positions(db_session, session.id, mock_broker, live_config, reason="manual-stop")

        assert closed == 2
        mock_broker.close_trade.assert_awaited_once_with("T-1")
        assert live.exit_price == 1.105
        assert live.close_reason == "manual-stop"
        assert paper.exit_price == 1.3
        assert paper.close_reason == "manual-stop"

    @pytest.mark.asyncio
    async def test_entry_price_fallback_and_default_reason(self, db_session, make_session, mock_broker, paper_config):
        """Edge case: no last price closes at entry, reason defaults to manual."""
        session = await make_session(status="stopped")
        position = await create_position(db_session, session, "short", -100, 1.05)

        await close_session_positions(db_session, session.id, mock_broker, paper_config)

        assert position.exit_price == 1.05
        assert position.close_reason == "manual"

    @pytest.mark.asyncio
    async def test_failure_logged_and_others_closed(self, db_session, make_session, mock_broker, live_config):
        """Failure: one broker close fails, the rest still close, status unchanged."""
        session = await make_session(status="stopped", last_price=1.3)
        failing = await create_position(db_session, session, "long", 100, 1.0, broker_trade_id="T-1")
        paper = await create_position(db_session, session, "long", 100, 1.0)
        # The failed close rolls back the session, expiring these instances
        session_id, failing_id, paper_id = session.id, failing.id, paper.id
        mock_broker.close_trade.side_effect = BrokerRequestError("OANDA request failed (404 Not Found): gone")

        closed = await close_session_positions(db_session, session_id, mock_broker, live_config)

        assert closed == 1
        stored_failing = await db_session.get(TraderPosition, failing_id)
        stored_paper = await db_session.get(TraderPosition, paper_id)
        assert stored_failing.status == "open"
        assert stored_paper.status == "closed"

        stored_session = await db_session.get(TraderSession, session_id)
        assert stored_session.status == "stopped"
        errors = [log for log in await _logs(db_session, session_id) if log.level == "error"]
        assert errors[0].message == f"Failed to close position {failing_id}: OANDA request failed (404 Not Found): gone"

    @pytest.mark.asyncio
    async def test_missing_session(self, db_session, mock_broker, live_config):
        assert await close_session_positions(db_session, 999, mock_broker, live_config) == 0


class TestSweep:
    """Tests for list_running_session_ids() and tick_active_sessions()"""

    @pytest.mark.asyncio
    async def test_only_running_sessions_evaluated(
        self, db_session, make_session, make_candles, mock_broker, paper_config
    ):
        running_a = await make_session(name="A")
        running_b = await make_session(name="B")
        await make_session(name="C", status="stopped")
        await make_session(name="D", status="error")
        mock_broker.get_candles.return_value = make_candles([1.0] * 9)

        assert sorted(await list_running_session_ids(db_session)) == sorted([running_a.id, running_b.id])

        count = await tick_active_sessions(db_session, mock_broker, paper_config)

        assert count == 2
        assert mock_broker.get_candles.await_count == 2
