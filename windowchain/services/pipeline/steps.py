"""
Pipeline Steps

Tagged step variants and the modifiers that wrap them.

A step is either PLAIN (a user callable) or a modifier variant holding the
step it wraps. Steps are frozen descriptions; ``compile()`` turns one into an
async callable and creates any runtime state (timers, locks, caches) fresh,
so every built pipeline owns its own state.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Set

import structlog

from ...core.exceptions import TimeoutException
from ...domain.cache.value_objects import CacheOptions
from ..cache.cache_service import CacheService
from .retry import RetryOptions, call_maybe_async, with_retry

logger = structlog.get_logger(__name__)

StepCallable = Callable[[Any], Awaitable[Any]]

_MISSING = object()


class StepKind(str, Enum):
    """Variant tag of a pipeline step."""

    PLAIN = "plain"
    RETRY = "retry"
    TIMEOUT = "timeout"
    DEBOUNCE = "debounce"
    THROTTLE = "throttle"
    CACHE = "cache"


class StepModifier(ABC):
    """Behaviour attached to an existing step."""

    kind: StepKind
    # Appending modifiers add a new entry and consume the wrapped one;
    # the others replace the wrapped entry in place.
    appends: bool = True

    @abstractmethod
    def compile(self, run: StepCallable, name: str) -> StepCallable:
        """Wrap a compiled step, creating fresh runtime state."""
        pass


def _require_positive(seconds: float, what: str) -> float:
    if seconds <= 0:
        raise ValueError(f"{what} duration must be positive, got {seconds}")
    return float(seconds)


class RetryModifier(StepModifier):
    kind = StepKind.RETRY
    appends = False

    def __init__(self, options: Optional[RetryOptions] = None):
        self.options = options or RetryOptions()

    def compile(self, run: StepCallable, name: str) -> StepCallable:
        return with_retry(run, self.options)


class TimeoutModifier(StepModifier):
    """Fail with TimeoutException when the step outlives its deadline."""

    kind = StepKind.TIMEOUT

    def __init__(self, seconds: float):
        self.seconds = _require_positive(seconds, "Timeout")

    def compile(self, run: StepCallable, name: str) -> StepCallable:
        seconds = self.seconds

        async def timed(value: Any) -> Any:
            deadline = asyncio.timeout(seconds)
            try:
                async with deadline:
                    return await run(value)
            except TimeoutError:
                # Errors raised by the step itself pass through unchanged
                if not deadline.expired():
                    raise
                logger.warning("step_timed_out", step=name, timeout_seconds=seconds)
                raise TimeoutException(seconds, step=name) from None

        return timed


class _Debouncer:
    """Trailing-edge debounce: only the latest input within the window runs."""

    def __init__(self, run: StepCallable, seconds: float):
        self._run = run
        self._seconds = seconds
        self._handle: Optional[asyncio.TimerHandle] = None
        self._waiters: List[asyncio.Future] = []
        self._latest: Any = None
        self._tasks: Set[asyncio.Task] = set()

    async def __call__(self, value: Any) -> Any:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self._waiters.append(waiter)
        self._latest = value

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._seconds, self._fire)

        return await waiter

    def _fire(self) -> None:
        self._handle = None
        waiters, self._waiters = self._waiters, []
        task = asyncio.ensure_future(self._execute(self._latest, waiters))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, value: Any, waiters: List[asyncio.Future]) -> None:
        try:
            result = await self._run(value)
        except asyncio.CancelledError:
            for waiter in waiters:
                waiter.cancel()
            raise
        except Exception as e:
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(e)
            return

        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(result)


class DebounceModifier(StepModifier):
    """Coalesce calls arriving within the window into one trailing call.

    Superseded callers resolve with the trailing call's result or error.
    """

    kind = StepKind.DEBOUNCE

    def __init__(self, seconds: float):
        self.seconds = _require_positive(seconds, "Debounce")

    def compile(self, run: StepCallable, name: str) -> StepCallable:
        return _Debouncer(run, self.seconds)


class _Throttler:
    """Space consecutive executions by a minimum interval. Never drops calls."""

    def __init__(self, run: StepCallable, seconds: float):
        self._run = run
        self._seconds = seconds
        self._last_run: Optional[float] = None
        self._lock = asyncio.Lock()

    async def __call__(self, value: Any) -> Any:
        loop = asyncio.get_running_loop()
        async with self._lock:
            if self._last_run is not None:
                wait = self._last_run + self._seconds - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_run = loop.time()

        return await self._run(value)


class ThrottleModifier(StepModifier):
    kind = StepKind.THROTTLE

    def __init__(self, seconds: float):
        self.seconds = _require_positive(seconds, "Throttle")

    def compile(self, run: StepCallable, name: str) -> StepCallable:
        return _Throttler(run, self.seconds)


def _canonical(value: Any) -> Any:
    type_name = type(value).__name__

    if value is None or isinstance(value, (bool, int, float, str)):
        return [type_name, value]
    if isinstance(value, (list, tuple)):
        return [type_name, [_canonical(item) for item in value]]
    if isinstance(value, Mapping):
        pairs = [[_canonical(k), _canonical(v)] for k, v in value.items()]
        pairs.sort(key=lambda pair: json.dumps(pair[0]))
        return [type_name, pairs]
    if isinstance(value, (set, frozenset)):
        return [type_name, sorted((_canonical(item) for item in value), key=json.dumps)]
    return [type_name, repr(value)]


def cache_key(value: Any) -> str:
    """
    Deterministic key for a step input.

    Values are tagged with their type, so ``[1, 2]`` and ``(1, 2)`` or
    ``{1: x}`` and ``{"1": x}`` get different keys. Mapping keys of mixed
    types are ordered by their serialized form.
    """
    return json.dumps(_canonical(value), separators=(",", ":"))


class CacheModifier(StepModifier):
    """
    Memoize the wrapped step's output by its input.

    With ``options`` every build gets its own CacheService; an explicit
    ``service`` is shared by every build that uses this modifier.
    """

    kind = StepKind.CACHE

    def __init__(
        self,
        options: Optional[CacheOptions] = None,
        service: Optional[CacheService] = None,
    ):
        if options is not None and service is not None:
            raise ValueError("Pass either cache options or a cache service, not both")
        self.options = options
        self.service = service

    def compile(self, run: StepCallable, name: str) -> StepCallable:
        service = self.service or CacheService(self.options or CacheOptions())

        async def cached(value: Any) -> Any:
            if not service.initialized:
                await service.initialize()

            key = cache_key(value)
            hit = await service.get(key, _MISSING)
            if hit is not _MISSING:
                return hit

            result = await run(value)
            await service.set(key, result)
            return result

        return cached


@dataclass(frozen=True)
class PipelineStep:
    """
    One entry of a pipeline.

    PLAIN steps carry ``fn``; modifier variants carry the ``wrapped`` step,
    the ``modifier`` and the ``source_index`` of the entry they wrap.
    """

    kind: StepKind
    name: str
    fn: Optional[Callable[[Any], Any]] = None
    wrapped: Optional["PipelineStep"] = None
    modifier: Optional[StepModifier] = None
    source_index: Optional[int] = None

    @classmethod
    def plain(cls, fn: Callable[[Any], Any], name: Optional[str] = None) -> "PipelineStep":
        return cls(
            kind=StepKind.PLAIN,
            name=name or getattr(fn, "__name__", "step"),
            fn=fn,
        )

    @classmethod
    def modified(
        cls, wrapped: "PipelineStep", modifier: StepModifier, source_index: int
    ) -> "PipelineStep":
        return cls(
            kind=modifier.kind,
            name=f"{modifier.kind.value}({wrapped.name})",
            wrapped=wrapped,
            modifier=modifier,
            source_index=source_index,
        )

    def compile(self) -> StepCallable:
        """Build the async callable for this step and everything it wraps."""
        if self.kind is StepKind.PLAIN:
            fn = self.fn

            async def run(value: Any) -> Any:
                return await call_maybe_async(fn, value)

            return run

        return self.modifier.compile(self.wrapped.compile(), self.name)
