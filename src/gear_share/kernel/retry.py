"""
Retry logic with exponential backoff for transient failures.

SQLite lock contention is retried with backoff, and optimistic stream
conflicts are retried after catching up. Domain failures (validation,
state transitions, inventory shortfalls) are consequences of caller input
or concurrent decisions and always go straight back to the caller.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gear_share.kernel.errors import StreamVersionConflict
from gear_share.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    SQLite uses file-based locking and can encounter "database is locked"
    errors when several providers respond at the same moment.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 100)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Example:
        @retry_on_sqlite_lock()
        def append(...):
            conn.execute(...)
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )


def retry_on_stream_conflict(max_attempts: int = 3) -> Retrying:
    """
    Retrying controller for optimistic stream version conflicts.

    Another writer appended to the same stream between our read and our
    append. Callers catch their projection up and re-validate on every
    attempt after the first, so a retried reservation can still fail with
    InsufficientInventory once the newer events are seen.

    Example:
        for attempt in retry_on_stream_conflict():
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    catch_up(stream_id)
                append(build_events())
    """
    return Retrying(
        retry=retry_if_exception_type(StreamVersionConflict),
        stop=stop_after_attempt(max_attempts),
        before_sleep=lambda retry_state: logger.info(
            "Stream version conflict, catching up",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )
