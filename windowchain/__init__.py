"""
windowchain

Result cache with expiry and eviction policies, and composable async
pipelines around a slow, rate-limited generation service.
"""

from .core import (
    CancelledException,
    GenerationFailureException,
    PersistenceWarning,
    Settings,
    TimeoutException,
    TokenLimitException,
    TypeMismatchException,
    ValidationException,
    WindowChainException,
    configure_logging,
    get_settings,
)
from .domain.cache import TTL, CacheOptions, CacheStats, EvictionStrategy
from .infrastructure.storage import (
    CacheStorage,
    FileStorage,
    InMemoryStorage,
    RedisStorage,
    create_storage,
)
from .services.cache import CacheService, create_cache
from .services.generation import (
    EnhancedTokenCounter,
    GenerationResult,
    GenerationService,
    JsonOutputSession,
    LanguageModelSession,
    ProgressTracker,
    StreamChunk,
    TokenCounter,
    create_advanced_template,
    create_message_template,
    create_template,
    enhanced_prompt,
    format_messages,
)
from .services.pipeline import (
    Pipeline,
    PipelineBuilder,
    RetryOptions,
    branch,
    catch_error,
    create_pipeline,
    parallel,
    pipe,
    retry,
    with_retry,
)

__version__ = "0.1.0"

__all__ = [
    "CancelledException",
    "GenerationFailureException",
    "PersistenceWarning",
    "Settings",
    "TimeoutException",
    "TokenLimitException",
    "TypeMismatchException",
    "ValidationException",
    "WindowChainException",
    "configure_logging",
    "get_settings",
    "TTL",
    "CacheOptions",
    "CacheStats",
    "EvictionStrategy",
    "CacheStorage",
    "FileStorage",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
    "CacheService",
    "create_cache",
    "EnhancedTokenCounter",
    "GenerationResult",
    "GenerationService",
    "JsonOutputSession",
    "LanguageModelSession",
    "ProgressTracker",
    "StreamChunk",
    "TokenCounter",
    "create_advanced_template",
    "create_message_template",
    "create_template",
    "enhanced_prompt",
    "format_messages",
    "Pipeline",
    "PipelineBuilder",
    "RetryOptions",
    "branch",
    "catch_error",
    "create_pipeline",
    "parallel",
    "pipe",
    "retry",
    "with_retry",
]
