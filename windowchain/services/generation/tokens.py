"""
Token Estimation

Heuristic token counters for budgeting a context window.
Estimates only; no tokenizer is consulted.
"""

import math
import re
from typing import Optional

from ...core.config import get_settings

_WORD_SPLIT = re.compile(r"\s+")
_NEWLINES = re.compile(r"\n+")
_PUNCTUATION = re.compile(r"[.,!?;:'\"(){}\[\]]")
_DIGITS = re.compile(r"\d")

COMMON_WORDS = frozenset({"the", "be", "to", "of", "and", "a", "in", "that", "have", "i"})
# Order matters: each suffix found removes its first occurrence before the next is checked
SUBWORDS = ("ing", "ed", "ly", "er", "est", "tion", "ment")


class TokenCounter:
    """Budget tracker estimating one token per four characters."""

    def __init__(self, max_tokens: Optional[int] = None):
        self.max_tokens = max_tokens if max_tokens is not None else get_settings().TOKEN_LIMIT_DEFAULT
        self._used = 0

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / 4)

    def track(self, text: str) -> int:
        """Add the estimate for text to the used total and return it."""
        tokens = self.estimate(text)
        self._used += tokens
        return tokens

    def reset(self) -> None:
        self._used = 0

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return self.max_tokens - self._used

    def would_exceed_limit(self, text: str) -> bool:
        return self._used + self.estimate(text) > self.max_tokens


class EnhancedTokenCounter(TokenCounter):
    """
    Word-level estimator.

    Common words and words containing digits count as one token,
    punctuation marks and known suffixes count one each, the remaining
    characters count one per four. Newline runs add one. Never below one.
    """

    def estimate(self, text: str) -> int:
        tokens = 0

        for word in _WORD_SPLIT.split(text):
            if word.lower() in COMMON_WORDS:
                tokens += 1
                continue

            if _DIGITS.search(word):
                tokens += 1
                continue

            tokens += len(_PUNCTUATION.findall(word))

            remaining = word
            for subword in SUBWORDS:
                if subword in remaining:
                    tokens += 1
                    remaining = remaining.replace(subword, "", 1)

            if remaining:
                tokens += math.ceil(len(remaining) / 4)

        tokens += len(_NEWLINES.findall(text))
        return max(1, tokens)
