"""
Bounded retry helper.

Runs an async callable with exponential backoff and reports the outcome
as a BatchOutcome instead of raising, so batch loops can record failures
and move on.

Dependencies: tenacity
System role: Shared retry policy for uploads and graph enrichment
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ragbot.models.results import BatchOutcome

logger = logging.getLogger(__name__)


def _always(exc: BaseException) -> bool:
    return True


async def run_with_retry(
    fn: Callable[[], Awaitable[Any]],
    *,
    attempts: int = 3,
    initial: float = 1.0,
    maximum: float = 10.0,
    retry_on: Callable[[BaseException], bool] | None = None,
    operation: str = "batch",
) -> BatchOutcome:
    """
    Call ``fn`` up to ``attempts`` times with exponential backoff.

    Args:
        fn: Zero-argument coroutine factory
        attempts: Maximum number of calls
        initial: First backoff delay in seconds
        maximum: Backoff ceiling in seconds
        retry_on: Predicate selecting retryable exceptions (default: all)
        operation: Label used in log messages

    Returns:
        BatchOutcome: succeeded with the value, or failed with the last error
    """
    attempt_number = 0
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=initial, max=maximum, jitter=initial),
            retry=retry_if_exception(retry_on or _always),
            before_sleep=lambda state: logger.warning(
                f"{__name__}:run_with_retry - {operation} retry "
                f"{state.attempt_number}/{attempts}: {state.outcome.exception()}"
            ),
            reraise=True,
        ):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                value = await fn()
    except Exception as e:
        logger.error(
            f"{__name__}:run_with_retry - {operation} failed after "
            f"{attempt_number} attempt(s): {type(e).__name__}: {e}"
        )
        return BatchOutcome(status="failed", attempts=attempt_number, error=str(e))

    return BatchOutcome(status="succeeded", attempts=attempt_number, value=value)
