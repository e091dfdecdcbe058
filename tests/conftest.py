"""
Main pytest configuration for windowchain tests.

Shared fixtures: deterministic clock, in-memory storage, fake sessions.
"""

import asyncio
import os

import pytest

# Set test environment variables before importing library modules
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["CACHE_STORAGE_BACKEND"] = "memory"

from windowchain.core.config import get_settings  # noqa: E402
from windowchain.core.logging import configure_logging  # noqa: E402
from windowchain.infrastructure.storage import InMemoryStorage  # noqa: E402

get_settings.cache_clear()
configure_logging(level="DEBUG", json_logs=False)


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Deterministic clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def memory_storage():
    """Empty in-memory storage."""
    return InMemoryStorage()


class FakeSession:
    """Language-model session returning canned responses."""

    def __init__(self, response="ok", chunks=None, error=None, delay=0.0):
        self.response = response
        self.chunks = chunks or []
        self.error = error
        self.delay = delay
        self.calls = []
        self.tokens_so_far = 10
        self.max_tokens = 4096
        self.tokens_left = 4086

    async def prompt(self, text, *, signal=None, **options):
        self.calls.append((text, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response

    async def prompt_streaming(self, text, *, signal=None, **options):
        self.calls.append((text, options))
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


@pytest.fixture
def make_session():
    """Factory for fake language-model sessions."""
    return FakeSession
