"""
Per-session asyncio locks.

Ticks and close-all jobs for the same session run one at a time. Without this,
a scheduled tick and a manual tick for one session both see "no open position"
and both open one. Different sessions never block each other.

The locks are process local: a single worker process is assumed.
"""

import asyncio
from typing import Dict

_session_locks: Dict[int, asyncio.Lock] = {}


def get_session_lock(session_id: int) -> asyncio.Lock:
    """Return (or create) the asyncio.Lock for a given session."""
    if session_id not in _session_locks:
        _session_locks[session_id] = asyncio.Lock()
    return _session_locks[session_id]
