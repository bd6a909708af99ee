"""
Application Constants

Centralized constants for session states, signals, log levels and candle limits.
"""

# Session lifecycle states
SESSION_STOPPED = "stopped"
SESSION_RUNNING = "running"
SESSION_ERROR = "error"

# Crossover signals (a non-neutral signal doubles as a position direction)
SIGNAL_LONG = "long"
SIGNAL_SHORT = "short"
SIGNAL_NEUTRAL = "neutral"

# Position states
POSITION_OPEN = "open"
POSITION_CLOSED = "closed"

# Session log levels
LOG_INFO = "info"
LOG_WARN = "warn"
LOG_ERROR = "error"
LOG_TRADE = "trade"
LOG_ANALYSIS = "analysis"
LOG_LEVELS = (LOG_INFO, LOG_WARN, LOG_ERROR, LOG_TRADE, LOG_ANALYSIS)

# Close reasons recorded on positions
CLOSE_REASON_BROKER = "broker-closed"
CLOSE_REASON_NEUTRAL = "neutral-signal"
CLOSE_REASON_FLIP = "signal-flip"
CLOSE_REASON_MANUAL = "manual"
CLOSE_REASON_MANUAL_STOP = "manual-stop"

# Tick reasons
TICK_REASON_SCHEDULED = "scheduled"
TICK_REASON_MANUAL_START = "manual-start"
TICK_REASON_MANUAL_TICK = "manual-tick"

# Default configuration offered for new sessions
DEFAULT_SESSION_CONFIG = {
    "name": "Crypto Momentum Agent",
    "instrument": "BTC_USD",
    "granularity": "M5",
    "short_window": 9,
    "long_window": 21,
    "trade_units": 1.0,
    "take_profit_multiplier": 0.01,
    "stop_loss_multiplier": 0.005,
    "neutral_threshold": 0.0005,
}

# OANDA caps a single candles request at 5000
MAX_CANDLE_COUNT = 5000
