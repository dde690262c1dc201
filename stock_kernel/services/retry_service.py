"""
retry_transient -- re-run a whole logical operation after a transient failure.

A unit of work that fails with TransientStoreError has been rolled back in
full, so re-running the complete operation is safe.  Individual steps are
never retried: replaying a ledger call alone would double-apply it.
"""

import time
from typing import Callable, TypeVar

from stock_kernel.exceptions import TransientStoreError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def retry_transient(
    operation: Callable[[], T],
    max_attempts: int = 3,
    backoff: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it succeeds or ``max_attempts`` is reached.

    Only TransientStoreError is retried; every other exception propagates
    on the first occurrence.  The wait grows linearly: ``backoff * attempt``.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except TransientStoreError as exc:
            if attempt == max_attempts:
                logger.error(
                    "transient_retry_exhausted",
                    extra={"attempts": attempt, "operation": exc.operation},
                )
                raise
            logger.warning(
                "transient_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "operation": exc.operation,
                    "reason": exc.reason,
                },
            )
            sleep(backoff * attempt)
    raise AssertionError("unreachable")
