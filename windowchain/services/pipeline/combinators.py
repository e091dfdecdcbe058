"""
Pipeline Combinators

Free-standing helpers for composing callables outside a builder.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .retry import RetryOptions, call_maybe_async, with_retry


def pipe(*fns: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """Compose synchronous callables left to right."""

    def piped(value: Any) -> Any:
        return functools.reduce(lambda acc, fn: fn(acc), fns, value)

    return piped


def parallel(fns: Sequence[Callable[[Any], Any]]) -> Callable[[Any], Awaitable[List[Any]]]:
    """Run every callable on the same input concurrently; results keep fns order."""

    async def run_all(value: Any) -> List[Any]:
        return list(await asyncio.gather(*(call_maybe_async(fn, value) for fn in fns)))

    return run_all


def branch(
    condition: Any,
    if_true: Callable[[Any], Any],
    if_false: Callable[[Any], Any],
) -> Callable[[Any], Awaitable[Any]]:
    """Pick a callable by a predicate (or plain value) on the input."""

    async def choose(value: Any) -> Any:
        if callable(condition):
            should_branch = await call_maybe_async(condition, value)
        else:
            should_branch = condition
        return await call_maybe_async(if_true if should_branch else if_false, value)

    return choose


def retry(
    fn: Callable[..., Any], options: Optional[RetryOptions] = None, **overrides: Any
) -> Callable[..., Awaitable[Any]]:
    """Retrying version of fn; see ``with_retry``."""
    options = options or RetryOptions()
    if overrides:
        options = RetryOptions(**{**options.model_dump(), **overrides})
    return with_retry(fn, options)


def catch_error(
    fn: Callable[[Any], Any], handler: Callable[[Exception, Any], Any]
) -> Callable[[Any], Awaitable[Any]]:
    """Turn failures of fn into ``handler(error, input)``."""

    async def guarded(value: Any) -> Any:
        try:
            return await call_maybe_async(fn, value)
        except Exception as e:
            return await call_maybe_async(handler, e, value)

    return guarded
