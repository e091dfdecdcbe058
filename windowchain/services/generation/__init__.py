"""
Generation Services

Prompt execution over an injected language-model session, plus templates,
token estimation and progress reporting.
"""

from .collaborator import (
    GenerationMetadata,
    GenerationResult,
    LanguageModelSession,
    StreamChunk,
)
from .progress import ProgressTracker
from .prompt import (
    GenerationService,
    JsonOutputSession,
    enhanced_prompt,
    format_messages,
)
from .templates import (
    create_advanced_template,
    create_message_template,
    create_template,
)
from .tokens import EnhancedTokenCounter, TokenCounter

__all__ = [
    "GenerationMetadata",
    "GenerationResult",
    "LanguageModelSession",
    "StreamChunk",
    "ProgressTracker",
    "GenerationService",
    "JsonOutputSession",
    "enhanced_prompt",
    "format_messages",
    "create_advanced_template",
    "create_message_template",
    "create_template",
    "EnhancedTokenCounter",
    "TokenCounter",
]
