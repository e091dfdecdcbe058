"""
Generation Service

Runs prompts against an injected language-model session.
Cancellation arrives through an ``asyncio.Event`` and surfaces as
CancelledException; every other failure becomes GenerationFailureException.
"""

import asyncio
import inspect
import json
from typing import Any, AsyncIterator, Mapping, Optional, Sequence, Union

import structlog

from ...core.exceptions import (
    CancelledException,
    GenerationFailureException,
    TokenLimitException,
)
from ..cache.cache_service import CacheService
from ..pipeline.retry import RetryOptions, with_retry
from .collaborator import (
    GenerationMetadata,
    GenerationResult,
    LanguageModelSession,
    StreamChunk,
)
from .progress import ProgressTracker
from .tokens import TokenCounter

logger = structlog.get_logger(__name__)

PromptInput = Union[str, Sequence[Any]]


def format_messages(messages: Sequence[Any]) -> str:
    """
    Render chat messages as ``role: content`` lines.

    Accepts ``(role, content)`` pairs, mappings with role/content keys, or
    objects exposing role/content attributes.
    """
    lines = []
    for message in messages:
        if isinstance(message, (list, tuple)):
            role, content = message
        elif isinstance(message, Mapping):
            role, content = message["role"], message["content"]
        else:
            role, content = message.role, message.content
        lines.append(f"{role}: {content}")
    return "\n".join(lines)


def _as_text(input: PromptInput) -> str:
    return input if isinstance(input, str) else format_messages(input)


def _check_signal(signal: Optional[asyncio.Event]) -> None:
    if signal is not None and signal.is_set():
        raise CancelledException()


class JsonOutputSession:
    """Session wrapper that requests JSON output and parses the response."""

    def __init__(self, session: LanguageModelSession, schema: Optional[Mapping[str, Any]] = None):
        self._session = session
        self.schema = schema

    async def prompt(self, text: str, *, signal: Any = None, **options: Any) -> Any:
        response = await self._session.prompt(
            text,
            signal=signal,
            **{**options, "format": "json", "output_schema": self.schema},
        )
        return json.loads(response)

    def prompt_streaming(self, text: str, *, signal: Any = None, **options: Any) -> AsyncIterator[str]:
        return self._session.prompt_streaming(text, signal=signal, **options)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._session, name)


class GenerationService:
    """Prompt execution over an injected session."""

    def __init__(self, session: LanguageModelSession):
        if session is None:
            raise ValueError("session is required")
        self.session = session

    async def invoke(
        self,
        input: PromptInput,
        signal: Optional[asyncio.Event] = None,
        **options: Any,
    ) -> GenerationResult:
        """
        Run a single prompt.

        Args:
            input: Prompt text or a list of chat messages
            signal: Cancellation event; setting it abandons the call

        Returns:
            Generated content with the session's token accounting

        Raises:
            CancelledException: If the signal fires first
            GenerationFailureException: For any other failure
        """
        text = _as_text(input)
        _check_signal(signal)

        try:
            response = await self._race(
                self.session.prompt(text, signal=signal, **options), signal
            )
        except CancelledException:
            logger.info("prompt_cancelled")
            raise
        except Exception as e:
            logger.error("prompt_failed", error=str(e), error_type=type(e).__name__)
            raise GenerationFailureException(
                f"Failed to execute prompt: {e}", original_error=e
            )

        return GenerationResult(
            content=response,
            metadata=GenerationMetadata(
                tokens_so_far=getattr(self.session, "tokens_so_far", None),
                max_tokens=getattr(self.session, "max_tokens", None),
                tokens_left=getattr(self.session, "tokens_left", None),
            ),
        )

    async def invoke_streaming(
        self,
        input: PromptInput,
        signal: Optional[asyncio.Event] = None,
        **options: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a prompt as deltas, whether the session yields deltas or cumulative text."""
        text = _as_text(input)
        _check_signal(signal)

        previous = ""
        try:
            stream = self.session.prompt_streaming(text, signal=signal, **options)
            if inspect.isawaitable(stream):
                stream = await stream

            async for chunk in stream:
                _check_signal(signal)
                delta = chunk[len(previous):] if chunk.startswith(previous) else chunk
                yield StreamChunk(content=delta, is_partial=True)
                previous = chunk

        except CancelledException:
            logger.info("stream_cancelled")
            raise
        except Exception as e:
            logger.error("stream_failed", error=str(e), error_type=type(e).__name__)
            raise GenerationFailureException(f"Stream failed: {e}", original_error=e)

    @staticmethod
    async def _race(awaitable: Any, signal: Optional[asyncio.Event]) -> Any:
        if signal is None:
            return await awaitable

        call = asyncio.ensure_future(awaitable)
        cancelled = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {call, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()
            if not call.done():
                call.cancel()

        if call in done:
            return call.result()
        raise CancelledException()


async def enhanced_prompt(
    service: GenerationService,
    input: PromptInput,
    *,
    cache: Optional[CacheService] = None,
    cache_key: Optional[str] = None,
    progress_tracker: Optional[ProgressTracker] = None,
    token_counter: Optional[TokenCounter] = None,
    retry: bool = False,
    max_retries: int = 3,
    retry_delay: Optional[float] = None,
    signal: Optional[asyncio.Event] = None,
) -> GenerationResult:
    """
    Prompt with optional caching, token budgeting, retry and progress reporting.

    Raises:
        TokenLimitException: If the input would exceed the counter's budget
    """
    use_cache = cache is not None and bool(cache_key)
    if use_cache:
        if not cache.initialized:
            await cache.initialize()
        cached = await cache.get(cache_key)
        if cached is not None:
            logger.debug("prompt_cache_hit", cache_key=cache_key)
            return GenerationResult.model_validate(cached)

    text = _as_text(input)
    if token_counter is not None and token_counter.would_exceed_limit(text):
        raise TokenLimitException(
            used=token_counter.used,
            requested=token_counter.estimate(text),
            limit=token_counter.max_tokens,
        )

    invoke = service.invoke
    if retry:
        options = RetryOptions(max_retries=max_retries)
        if retry_delay is not None:
            options = RetryOptions(max_retries=max_retries, delay=retry_delay)
        invoke = with_retry(service.invoke, options)

    result = await invoke(input, signal)

    if token_counter is not None:
        token_counter.track(text)
        token_counter.track(str(result.content))

    if progress_tracker is not None:
        progress_tracker.update(token_counter.used if token_counter is not None else 0)

    if use_cache:
        await cache.set(cache_key, result.model_dump(mode="json"))

    return result
