"""
Pipeline Retry

Retry combinator for pipeline steps, driven by tenacity.
The wait before attempt n+1 is ``delay * n``; the last error propagates
unchanged once attempts are exhausted.
"""

import functools
import inspect
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ...core.config import get_settings
from ...core.exceptions import CancelledException

logger = structlog.get_logger(__name__)


class RetryOptions(BaseModel):
    """Retry configuration for a single step."""

    max_retries: int = Field(
        default_factory=lambda: get_settings().PIPELINE_RETRY_MAX_ATTEMPTS,
        ge=1,
        description="Total attempts, the first call included",
    )
    delay: float = Field(
        default_factory=lambda: get_settings().PIPELINE_RETRY_DELAY_SECONDS,
        ge=0.0,
        description="Base delay in seconds; grows linearly per attempt",
    )


async def call_maybe_async(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call fn and await the result when it is awaitable."""
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def _log_retry(fn_name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "step_retry_scheduled",
            step=fn_name,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(error),
        )

    return before_sleep


def with_retry(
    fn: Callable[..., Any], options: Optional[RetryOptions] = None
) -> Callable[..., Awaitable[Any]]:
    """
    Wrap fn so failed calls are retried.

    Args:
        fn: Sync or async callable
        options: Retry options (defaults from settings)

    Returns:
        Async callable with the same arguments as fn
    """
    options = options or RetryOptions()
    fn_name = getattr(fn, "__name__", repr(fn))

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.max_retries),
            wait=wait_incrementing(start=options.delay, increment=options.delay),
            retry=(
                retry_if_exception_type(Exception)
                & retry_if_not_exception_type(CancelledException)
            ),
            before_sleep=_log_retry(fn_name),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await call_maybe_async(fn, *args, **kwargs)
        return result

    return wrapper
