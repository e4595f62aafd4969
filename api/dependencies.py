"""
Shared dependencies for the Scheduling API.

This module provides:
- Config loader access for request handlers
- Per-session locks so only one solver/apply run touches a session's grid at a time
"""

from __future__ import annotations

import asyncio
import logging
import weakref

from scheduling.config import ConfigLoader

logger = logging.getLogger(__name__)

# ========================================
# Configuration
# ========================================


def get_config() -> ConfigLoader:
    """FastAPI dependency returning the process-wide config loader."""
    return ConfigLoader.get_instance()


# ========================================
# Per-session write serialization
# ========================================

# The core assumes at most one scheduling operation per session grid at a time.
# Entries live only while a holder or waiter references the lock.
_session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


def get_session_lock(session_id: str) -> asyncio.Lock:
    """Lock guarding writes to one session's grid."""
    lock = _session_locks.get(session_id)
    if lock is None:
        lock = asyncio.Lock()
        _session_locks[session_id] = lock
        logger.debug(f"Created grid lock for session {session_id}")
    return lock


def active_session_lock_count() -> int:
    return len(_session_locks)


def clear_session_locks() -> None:
    """Drop all locks (test helper)."""
    _session_locks.clear()
