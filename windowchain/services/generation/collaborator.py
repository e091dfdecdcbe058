"""
Generation Collaborator

Protocol of the host language-model session and the result models
produced from it.
"""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


@runtime_checkable
class LanguageModelSession(Protocol):
    """
    Host session performing the actual generation.

    ``prompt_streaming`` may yield cumulative text (each chunk extends the
    previous one) or plain deltas.
    """

    async def prompt(self, text: str, *, signal: Any = None, **options: Any) -> str:
        ...

    def prompt_streaming(
        self, text: str, *, signal: Any = None, **options: Any
    ) -> AsyncIterator[str]:
        ...


class GenerationMetadata(BaseModel):
    """Token accounting reported by the session at completion time."""

    tokens_so_far: Optional[int] = None
    max_tokens: Optional[int] = None
    tokens_left: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GenerationResult(BaseModel):
    """Completed generation."""

    content: Any
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)


class StreamChunk(BaseModel):
    """Incremental piece of a streamed generation."""

    content: str
    is_partial: bool = True
