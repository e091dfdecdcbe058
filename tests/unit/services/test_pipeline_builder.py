"""
Unit tests for Pipeline Builder.

Tests step composition, modifiers, error handling and build isolation.
"""

import asyncio

import pytest

from windowchain.core.exceptions import (
    CancelledException,
    TimeoutException,
    TypeMismatchException,
)
from windowchain.domain.cache.value_objects import CacheOptions
from windowchain.services.cache.cache_service import CacheService
from windowchain.services.pipeline.builder import PipelineBuilder, create_pipeline
from windowchain.services.pipeline.retry import RetryOptions
from windowchain.services.pipeline.steps import StepKind, TimeoutModifier


class Counter:
    """Callable recording every input it receives."""

    def __init__(self, fn=lambda value: value, failures=0, error=None):
        self.fn = fn
        self.failures = failures
        self.error = error or RuntimeError("transient")
        self.inputs = []

    async def __call__(self, value):
        self.inputs.append(value)
        if len(self.inputs) <= self.failures:
            raise self.error
        return self.fn(value)

    @property
    def calls(self):
        return len(self.inputs)


class TestComposition:
    """Test pipe, branch, map and filter."""

    @pytest.mark.asyncio
    async def test_pipe_sync_and_async(self):
        async def double(x):
            return x * 2

        pipeline = create_pipeline().pipe(lambda x: x + 1).pipe(double).build()

        assert await pipeline(3) == 8

    @pytest.mark.asyncio
    async def test_empty_pipeline_returns_input(self):
        assert await PipelineBuilder().build()("same") == "same"

    @pytest.mark.asyncio
    async def test_branch_with_predicate(self):
        pipeline = (
            PipelineBuilder()
            .branch(lambda x: x > 0, lambda x: "positive", lambda x: "non-positive")
            .build()
        )

        assert await pipeline(5) == "positive"
        assert await pipeline(-1) == "non-positive"

    @pytest.mark.asyncio
    async def test_branch_with_async_predicate_and_plain_value(self):
        async def is_even(x):
            return x % 2 == 0

        by_predicate = PipelineBuilder().branch(is_even, str, lambda x: None).build()
        by_value = PipelineBuilder().branch(False, str, lambda x: "else").build()

        assert await by_predicate(4) == "4"
        assert await by_value(4) == "else"

    @pytest.mark.asyncio
    async def test_map_preserves_order(self):
        async def slow_square(x):
            await asyncio.sleep(0.01 * (3 - x))
            return x * x

        pipeline = PipelineBuilder().map(slow_square).build()

        assert await pipeline([0, 1, 2]) == [0, 1, 4]
        assert await pipeline(()) == []

    @pytest.mark.asyncio
    async def test_map_requires_array(self):
        pipeline = PipelineBuilder().map(lambda x: x).build()

        with pytest.raises(TypeMismatchException, match="Map requires array input"):
            await pipeline("abc")

    @pytest.mark.asyncio
    async def test_filter(self):
        async def keep_odd(x):
            return x % 2 == 1

        pipeline = PipelineBuilder().filter(keep_odd).build()

        assert await pipeline([1, 2, 3, 4, 5]) == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_filter_requires_array(self):
        pipeline = PipelineBuilder().filter(bool).build()

        with pytest.raises(TypeMismatchException) as exc_info:
            await pipeline({"a": 1})

        assert exc_info.value.error_code == "TYPE_MISMATCH"
        assert exc_info.value.details["received_type"] == "dict"


class TestRetry:
    """Test the retry modifier."""

    @pytest.mark.asyncio
    async def test_retry_recovers(self):
        step = Counter(failures=2)
        pipeline = PipelineBuilder().pipe(step).retry(max_retries=3, delay=0).build()

        assert await pipeline("x") == "x"
        assert step.calls == 3

    @pytest.mark.asyncio
    async def test_retry_exhaustion_raises_last_error(self):
        step = Counter(failures=10, error=ValueError("still failing"))
        pipeline = (
            PipelineBuilder()
            .pipe(step)
            .retry(RetryOptions(max_retries=3, delay=0))
            .build()
        )

        with pytest.raises(ValueError, match="still failing"):
            await pipeline("x")
        assert step.calls == 3

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self):
        step = Counter(failures=10, error=CancelledException())
        pipeline = PipelineBuilder().pipe(step).retry(max_retries=5, delay=0).build()

        with pytest.raises(CancelledException):
            await pipeline("x")
        assert step.calls == 1

    def test_retry_replaces_in_place(self):
        builder = PipelineBuilder().pipe(lambda x: x).retry(delay=0)

        assert len(builder.steps) == 1
        assert builder.steps[0].kind == StepKind.RETRY

    def test_retry_validates_overrides(self):
        with pytest.raises(ValueError):
            PipelineBuilder().pipe(lambda x: x).retry(max_retries=0)


class TestWrapping:
    """Test wrap() bookkeeping."""

    def test_appending_modifiers_grow_steps(self):
        builder = PipelineBuilder().pipe(lambda x: x).timeout(1)

        assert len(builder.steps) == 2
        assert builder.steps[1].kind == StepKind.TIMEOUT
        assert builder.steps[1].source_index == 0
        assert builder.is_consumed(0)

    def test_wrapping_consumed_step_is_rejected(self):
        builder = PipelineBuilder().pipe(lambda x: x).timeout(1)

        with pytest.raises(ValueError, match="already wrapped"):
            builder.wrap(0, TimeoutModifier(2))

    def test_wrapping_missing_step_is_rejected(self):
        with pytest.raises(ValueError):
            PipelineBuilder().timeout(1)

        with pytest.raises(ValueError):
            PipelineBuilder().pipe(lambda x: x).wrap(5, TimeoutModifier(1))

    def test_non_positive_durations_are_rejected(self):
        builder = PipelineBuilder().pipe(lambda x: x)

        with pytest.raises(ValueError):
            builder.timeout(0)
        with pytest.raises(ValueError):
            builder.debounce(-1)
        with pytest.raises(ValueError):
            builder.throttle(0)

    @pytest.mark.asyncio
    async def test_wrapped_step_runs_once_per_run(self):
        step = Counter()
        pipeline = PipelineBuilder().pipe(step).timeout(1).build()

        await pipeline("x")

        assert step.calls == 1

    @pytest.mark.asyncio
    async def test_modifiers_stack(self):
        step = Counter(failures=1)
        pipeline = (
            PipelineBuilder()
            .pipe(step)
            .timeout(1)
            .retry(max_retries=2, delay=0)
            .build()
        )

        assert await pipeline("x") == "x"
        assert step.calls == 2


class TestTimeout:
    @pytest.mark.asyncio
    async def test_slow_step_times_out(self):
        async def slow(x):
            await asyncio.sleep(1)
            return x

        pipeline = PipelineBuilder().pipe(slow).timeout(0.05).build()

        with pytest.raises(TimeoutException) as exc_info:
            await pipeline("x")

        assert exc_info.value.details["timeout_seconds"] == 0.05
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_fast_step_passes(self):
        pipeline = PipelineBuilder().pipe(lambda x: x * 2).timeout(1).build()

        assert await pipeline(21) == 42

    @pytest.mark.asyncio
    async def test_timeout_error_raised_by_step_passes_through(self):
        async def upstream_timeout(x):
            raise TimeoutError("upstream gave up")

        pipeline = PipelineBuilder().pipe(upstream_timeout).timeout(1).build()

        with pytest.raises(TimeoutError, match="upstream gave up") as exc_info:
            await pipeline("x")

        assert not isinstance(exc_info.value, TimeoutException)


class TestDebounceAndThrottle:
    @pytest.mark.asyncio
    async def test_debounce_runs_latest_input_once(self):
        step = Counter(fn=lambda x: f"ran:{x}")
        pipeline = PipelineBuilder().pipe(step).debounce(0.05).build()

        results = await asyncio.gather(pipeline(1), pipeline(2), pipeline(3))

        assert step.inputs == [3]
        assert results == ["ran:3", "ran:3", "ran:3"]

    @pytest.mark.asyncio
    async def test_debounce_propagates_error_to_all_callers(self):
        step = Counter(failures=1, error=RuntimeError("boom"))
        pipeline = PipelineBuilder().pipe(step).debounce(0.02).build()

        results = await asyncio.gather(pipeline(1), pipeline(2), return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert step.calls == 1

    @pytest.mark.asyncio
    async def test_separate_windows_run_separately(self):
        step = Counter()
        pipeline = PipelineBuilder().pipe(step).debounce(0.02).build()

        await pipeline(1)
        await pipeline(2)

        assert step.inputs == [1, 2]

    @pytest.mark.asyncio
    async def test_throttle_spaces_executions(self):
        loop = asyncio.get_running_loop()
        started = []

        async def record(x):
            started.append(loop.time())
            return x

        pipeline = PipelineBuilder().pipe(record).throttle(0.05).build()

        results = await asyncio.gather(pipeline(1), pipeline(2), pipeline(3))

        assert results == [1, 2, 3]
        gaps = [b - a for a, b in zip(started, started[1:])]
        assert all(gap >= 0.045 for gap in gaps)


class TestCacheStep:
    @pytest.mark.asyncio
    async def test_cache_skips_repeated_inputs(self):
        step = Counter(fn=lambda x: {"echo": x})
        pipeline = PipelineBuilder().pipe(step).cache(CacheOptions(ttl=60)).build()

        assert await pipeline({"b": 1, "a": 2}) == {"echo": {"b": 1, "a": 2}}
        assert await pipeline({"a": 2, "b": 1}) == {"echo": {"b": 1, "a": 2}}
        await pipeline({"a": 3})

        assert step.calls == 2

    @pytest.mark.asyncio
    async def test_cache_with_explicit_service(self):
        service = CacheService(CacheOptions(ttl=60))
        step = Counter(fn=lambda x: x or "fallback")
        pipeline = PipelineBuilder().pipe(step).cache(service=service).build()

        await pipeline("q")
        await pipeline("q")

        assert step.calls == 1
        assert service.stats().hits == 1
        assert service.stats().misses == 1

    @pytest.mark.asyncio
    async def test_falsy_results_are_cached(self):
        step = Counter(fn=lambda x: 0)
        pipeline = PipelineBuilder().pipe(step).cache(CacheOptions(ttl=60)).build()

        await pipeline("a")
        await pipeline("a")

        assert step.calls == 1

    @pytest.mark.asyncio
    async def test_mixed_key_types_are_cached(self):
        step = Counter(fn=lambda x: len(x))
        pipeline = PipelineBuilder().pipe(step).cache(CacheOptions(ttl=60)).build()

        assert await pipeline({1: "a", "b": 2}) == 2
        assert await pipeline({"b": 2, 1: "a"}) == 2

        assert step.calls == 1

    @pytest.mark.asyncio
    async def test_inputs_of_different_types_get_different_keys(self):
        step = Counter(fn=lambda x: type(x).__name__)
        pipeline = PipelineBuilder().pipe(step).cache(CacheOptions(ttl=60)).build()

        assert await pipeline([1, 2]) == "list"
        assert await pipeline((1, 2)) == "tuple"
        assert await pipeline({1: "x"}) == "dict"
        assert await pipeline({"1": "x"}) == "dict"

        assert step.calls == 4

    def test_options_and_service_are_exclusive(self):
        with pytest.raises(ValueError):
            PipelineBuilder().pipe(lambda x: x).cache(
                CacheOptions(), service=CacheService()
            )


class TestErrorHandlingAndFinalizer:
    @pytest.mark.asyncio
    async def test_error_without_handler_propagates(self):
        finalized = []
        pipeline = (
            PipelineBuilder()
            .pipe(Counter(failures=1, error=KeyError("k")))
            .finalize(lambda: finalized.append(True))
            .build()
        )

        with pytest.raises(KeyError):
            await pipeline("x")
        assert finalized == [True]

    @pytest.mark.asyncio
    async def test_on_error_result_is_returned(self):
        seen = []

        def handler(error):
            seen.append(error)
            return "recovered"

        pipeline = (
            PipelineBuilder()
            .pipe(Counter(failures=1))
            .pipe(lambda x: "unreachable")
            .on_error(handler)
            .build()
        )

        assert await pipeline("x") == "recovered"
        assert isinstance(seen[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_handler_receives_cancellation_unchanged(self):
        error = CancelledException()
        seen = []
        pipeline = (
            PipelineBuilder()
            .pipe(Counter(failures=1, error=error))
            .on_error(lambda e: seen.append(e) or "handled")
            .build()
        )

        assert await pipeline("x") == "handled"
        assert seen == [error]

    @pytest.mark.asyncio
    async def test_finalizer_runs_once_per_run(self):
        calls = []

        async def cleanup():
            calls.append("done")

        pipeline = PipelineBuilder().pipe(lambda x: x).finalize(cleanup).build()
        await pipeline(1)
        await pipeline(2)

        assert calls == ["done", "done"]


class TestBuildIsolation:
    @pytest.mark.asyncio
    async def test_builds_do_not_share_cache_state(self):
        step = Counter()
        builder = PipelineBuilder().pipe(step).cache(CacheOptions(ttl=60))

        first = builder.build()
        second = builder.build()
        await first("x")
        await second("x")

        assert step.calls == 2

    @pytest.mark.asyncio
    async def test_builds_do_not_share_debounce_state(self):
        step = Counter(fn=lambda x: f"ran:{x}")
        builder = PipelineBuilder().pipe(step).debounce(0.05)

        first = builder.build()
        second = builder.build()
        results = await asyncio.gather(first(1), second(2))

        assert results == ["ran:1", "ran:2"]
        assert sorted(step.inputs) == [1, 2]

    @pytest.mark.asyncio
    async def test_builds_do_not_share_throttle_state(self):
        loop = asyncio.get_running_loop()
        builder = PipelineBuilder().pipe(lambda x: x).throttle(0.3)

        first = builder.build()
        second = builder.build()
        started = loop.time()
        results = await asyncio.gather(first(1), second(2))

        assert results == [1, 2]
        assert loop.time() - started < 0.2

    @pytest.mark.asyncio
    async def test_built_pipeline_ignores_later_changes(self):
        builder = PipelineBuilder().pipe(lambda x: x + 1)
        pipeline = builder.build()
        builder.pipe(lambda x: x * 100)

        assert await pipeline(1) == 2
        assert len(pipeline.step_names) == 1
