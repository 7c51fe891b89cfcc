"""Bounded retry with exponential backoff for store and oracle calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from worldgraph.utils.exceptions import GraphStoreError, TransientInfraError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_retries: int = 3,
    retry_delay: float = 0.5,
    retryable: tuple[type[BaseException], ...] = (GraphStoreError,),
) -> T:
    """
    Retry an async operation with exponential backoff.

    Only exceptions listed in `retryable` are retried. Anything else
    propagates unchanged on the first occurrence.

    Args:
        operation: Async callable to retry
        operation_name: Name for logging
        max_retries: Total number of attempts
        retry_delay: Base delay in seconds, doubled after every failed attempt
        retryable: Exception types considered transient

    Returns:
        Result of operation

    Raises:
        TransientInfraError: If all attempts fail with retryable errors
    """
    attempts = max(1, max_retries)
    last_error: BaseException | None = None

    for attempt in range(attempts):
        try:
            return await operation()
        except retryable as e:
            last_error = e
            if attempt < attempts - 1:
                delay = retry_delay * (2**attempt)
                logger.warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{attempts}): {e}. "
                    f"Retrying in {delay}s...",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt + 1,
                        "error_type": type(e).__name__,
                    },
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"{operation_name} failed after {attempts} attempts",
                    extra={
                        "operation": operation_name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

    raise TransientInfraError(
        f"{operation_name} failed after {attempts} attempts: {last_error}",
        context={
            "operation": operation_name,
            "max_retries": attempts,
            "error_type": type(last_error).__name__,
        },
    ) from last_error
