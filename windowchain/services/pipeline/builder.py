"""
Pipeline Builder

Fluent builder assembling multi-step async processing chains.

Steps are kept as an ordered list of tagged variants. ``retry`` rewrites the
most recent entry in place; ``timeout``, ``debounce``, ``throttle`` and
``cache`` append a new entry that consumes the one it wraps, so a wrapped
step only ever runs through its wrapper. ``build()`` compiles a snapshot into
an immutable ``Pipeline``.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

import structlog
from opentelemetry import trace

from ...core.exceptions import TypeMismatchException
from ...domain.cache.value_objects import CacheOptions
from ..cache.cache_service import CacheService
from .retry import RetryOptions, call_maybe_async
from .steps import (
    CacheModifier,
    DebounceModifier,
    PipelineStep,
    RetryModifier,
    StepCallable,
    StepModifier,
    ThrottleModifier,
    TimeoutModifier,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ErrorHandler = Callable[[Exception], Any]
Finalizer = Callable[[], Any]


def _require_sequence(operation: str, value: Any) -> Sequence[Any]:
    if not isinstance(value, (list, tuple)):
        raise TypeMismatchException(operation, value)
    return value


class Pipeline:
    """Compiled, immutable pipeline. Call it with an input value."""

    def __init__(
        self,
        runners: Sequence[Tuple[str, StepCallable]],
        error_handler: Optional[ErrorHandler] = None,
        finalizer: Optional[Finalizer] = None,
    ):
        self._runners = tuple(runners)
        self._error_handler = error_handler
        self._finalizer = finalizer

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in self._runners]

    async def __call__(self, value: Any) -> Any:
        with tracer.start_as_current_span("pipeline.run") as span:
            span.set_attribute("pipeline.steps", len(self._runners))
            try:
                result = value
                for _, runner in self._runners:
                    result = await runner(result)
                return result

            except Exception as e:
                span.record_exception(e)
                if self._error_handler is None:
                    raise
                logger.info(
                    "pipeline_error_handled",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return await call_maybe_async(self._error_handler, e)

            finally:
                if self._finalizer is not None:
                    await call_maybe_async(self._finalizer)


class PipelineBuilder:
    """
    Fluent pipeline builder.

    Every method returns the builder; ``build()`` finalizes it.
    """

    def __init__(self):
        self._steps: List[PipelineStep] = []
        self._consumed: Set[int] = set()
        self._error_handler: Optional[ErrorHandler] = None
        self._finalizer: Optional[Finalizer] = None

    @property
    def steps(self) -> Tuple[PipelineStep, ...]:
        return tuple(self._steps)

    def is_consumed(self, step_index: int) -> bool:
        return self._normalize_index(step_index) in self._consumed

    def pipe(self, fn: Callable[[Any], Any], name: Optional[str] = None) -> "PipelineBuilder":
        """Append a sync or async callable."""
        self._steps.append(PipelineStep.plain(fn, name))
        return self

    def branch(
        self,
        condition: Any,
        if_true: Callable[[Any], Any],
        if_false: Callable[[Any], Any],
    ) -> "PipelineBuilder":
        """
        Route the value through one of two callables.

        Args:
            condition: Predicate called with the value, or a plain value
            if_true: Applied when the condition holds
            if_false: Applied otherwise
        """

        async def choose(value: Any) -> Any:
            if callable(condition):
                should_branch = await call_maybe_async(condition, value)
            else:
                should_branch = condition
            chosen = if_true if should_branch else if_false
            return await call_maybe_async(chosen, value)

        return self.pipe(choose, name="branch")

    def map(self, fn: Callable[[Any], Any]) -> "PipelineBuilder":
        """Apply fn to every element concurrently, keeping input order."""

        async def map_items(value: Any) -> List[Any]:
            items = _require_sequence("Map", value)
            return list(await asyncio.gather(*(call_maybe_async(fn, item) for item in items)))

        return self.pipe(map_items, name="map")

    def filter(self, predicate: Callable[[Any], Any]) -> "PipelineBuilder":
        """Keep elements whose predicate holds, evaluated concurrently."""

        async def filter_items(value: Any) -> List[Any]:
            items = _require_sequence("Filter", value)
            keep = await asyncio.gather(
                *(call_maybe_async(predicate, item) for item in items)
            )
            return [item for item, kept in zip(items, keep) if kept]

        return self.pipe(filter_items, name="filter")

    def wrap(self, step_index: int, modifier: StepModifier) -> "PipelineBuilder":
        """
        Attach a modifier to an existing step.

        Raises:
            ValueError: If the step does not exist or is already wrapped
                by an appending modifier
        """
        index = self._normalize_index(step_index)
        if index in self._consumed:
            raise ValueError(f"Step {step_index} is already wrapped")

        target = self._steps[index]
        wrapped = PipelineStep.modified(target, modifier, index)
        if modifier.appends:
            self._consumed.add(index)
            self._steps.append(wrapped)
        else:
            self._steps[index] = wrapped
        return self

    def retry(self, options: Optional[RetryOptions] = None, **overrides: Any) -> "PipelineBuilder":
        """Retry the most recent step on failure. Does not add a step."""
        options = options or RetryOptions()
        if overrides:
            options = RetryOptions(**{**options.model_dump(), **overrides})
        return self.wrap(-1, RetryModifier(options))

    def timeout(self, seconds: float) -> "PipelineBuilder":
        return self.wrap(-1, TimeoutModifier(seconds))

    def debounce(self, seconds: float) -> "PipelineBuilder":
        return self.wrap(-1, DebounceModifier(seconds))

    def throttle(self, seconds: float) -> "PipelineBuilder":
        return self.wrap(-1, ThrottleModifier(seconds))

    def cache(
        self,
        options: Optional[CacheOptions] = None,
        *,
        service: Optional[CacheService] = None,
    ) -> "PipelineBuilder":
        """Memoize the most recent step by its input."""
        return self.wrap(-1, CacheModifier(options, service=service))

    def on_error(self, handler: ErrorHandler) -> "PipelineBuilder":
        """Set the pipeline-wide error handler; its return value becomes the result."""
        self._error_handler = handler
        return self

    def finalize(self, fn: Finalizer) -> "PipelineBuilder":
        """Set the cleanup action run once after every run."""
        self._finalizer = fn
        return self

    def build(self) -> Pipeline:
        """Compile the current steps into a Pipeline."""
        runners = [
            (step.name, step.compile())
            for index, step in enumerate(self._steps)
            if index not in self._consumed
        ]
        logger.debug("pipeline_built", steps=[name for name, _ in runners])
        return Pipeline(runners, self._error_handler, self._finalizer)

    def _normalize_index(self, step_index: int) -> int:
        if not self._steps:
            raise ValueError("Pipeline has no steps to wrap")
        index = step_index + len(self._steps) if step_index < 0 else step_index
        if not 0 <= index < len(self._steps):
            raise ValueError(f"No step at index {step_index}")
        return index


def create_pipeline() -> PipelineBuilder:
    """Start a new pipeline builder."""
    return PipelineBuilder()
