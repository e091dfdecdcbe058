"""
Pipeline Services

Composable async pipelines with per-step retry, timeout, debounce,
throttle and caching.
"""

from .builder import Pipeline, PipelineBuilder, create_pipeline
from .combinators import branch, catch_error, parallel, pipe, retry
from .retry import RetryOptions, with_retry
from .steps import (
    CacheModifier,
    DebounceModifier,
    PipelineStep,
    RetryModifier,
    StepKind,
    StepModifier,
    ThrottleModifier,
    TimeoutModifier,
    cache_key,
)

__all__ = [
    "Pipeline",
    "PipelineBuilder",
    "create_pipeline",
    "branch",
    "catch_error",
    "parallel",
    "pipe",
    "retry",
    "RetryOptions",
    "with_retry",
    "CacheModifier",
    "DebounceModifier",
    "PipelineStep",
    "RetryModifier",
    "StepKind",
    "StepModifier",
    "ThrottleModifier",
    "TimeoutModifier",
    "cache_key",
]
