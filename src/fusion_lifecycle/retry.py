"""Exponential backoff retry helper.

Used around the Pure1 token exchange, and reusable for any call whose
failures can be transient. Delay arithmetic is integer milliseconds and
compounds: after each failed attempt the delay grows by
``int(delay * backoff_factor)``.

    backoff_factor 0.0 -> 100, 100, 100, ...
    backoff_factor 0.5 -> 100, 150, 225, ...
    backoff_factor 1.0 -> 100, 200, 400, ...
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from .tracing import TRACE, trace_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def always_retry(exc: Exception) -> bool:
    """Default classifier: every failure is considered transient."""
    return True


def retry(
    fn: Callable[[], T],
    *,
    initial_delay_ms: int,
    backoff_factor: float,
    attempt_limit: int,
    context: str,
    is_retryable: Callable[[Exception], bool] = always_retry,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, it fails permanently, or attempts run out.

    Args:
        fn: Zero-argument callable. Returning normally is success.
        initial_delay_ms: Cooldown before the second attempt, in milliseconds.
        backoff_factor: Growth applied to the delay after each failed attempt.
        attempt_limit: Maximum number of calls to ``fn``.
        context: Short label included in every log event.
        is_retryable: Returns False for failures that must not be retried.
        sleep: Blocking sleep taking seconds (injectable for tests).

    Returns:
        Whatever ``fn`` returned on its first successful call.

    Raises:
        ValueError: If attempt_limit is less than 1.
        Exception: The non-retryable failure, or the last failure once
            attempt_limit calls have failed.
    """
    if attempt_limit < 1:
        raise ValueError(f"attempt_limit must be at least 1: {attempt_limit}")

    delay_ms = int(initial_delay_ms)
    last_error: Exception | None = None

    for attempt in range(1, attempt_limit + 1):
        try:
            return fn()
        except Exception as e:
            last_error = e

            logger.warning(
                "retry_attempt",
                extra={
                    "context": context,
                    "attempt_done_count": attempt,
                    "cooldown_ms": delay_ms,
                    "error_message": str(e),
                },
            )
            logger.log(TRACE, "retry_attempt", extra={"attempt_limit": attempt_limit})
            trace_error(e)

            if not is_retryable(e):
                raise

            if attempt < attempt_limit:
                sleep(delay_ms / 1000)
                delay_ms += int(delay_ms * backoff_factor)

    logger.error(
        "retry_attempt",
        extra={
            "context": context,
            "attempt_limit": attempt_limit,
            "error_message": str(last_error),
        },
    )
    # SAFETY: attempt_limit >= 1, so the loop ran and every path that
    # reaches here assigned last_error
    assert last_error is not None, "Retry loop completed without setting last_error"
    raise last_error
