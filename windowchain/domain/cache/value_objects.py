"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety and validation for cache configuration and reporting.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...constants import DEFAULT_NAMESPACE
from ...core.config import get_settings


class EvictionStrategy(str, Enum):
    """Eviction strategies available to a cache instance."""

    LRU = "lru"
    LFU = "lfu"
    FIFO = "fifo"
    ARBITRARY = "arbitrary"


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Durations are expressed in (possibly fractional) seconds.
    """

    seconds: float

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def of_seconds(cls, seconds: float) -> "TTL":
        """Create TTL from seconds."""
        return cls(float(seconds))

    @classmethod
    def milliseconds(cls, milliseconds: float) -> "TTL":
        """Create TTL from milliseconds."""
        return cls(milliseconds / 1000.0)

    @classmethod
    def default(cls) -> "TTL":
        """Default cache TTL from settings (5 minutes unless overridden)."""
        return cls(get_settings().CACHE_DEFAULT_TTL_SECONDS)

    def __str__(self) -> str:
        return f"{self.seconds:g}s"


def storage_slot(namespace: str, prefix: Optional[str] = None) -> str:
    """Build the durable slot name for a cache namespace."""
    if not namespace:
        raise ValueError("Cache namespace cannot be empty")
    slot_prefix = prefix if prefix is not None else get_settings().CACHE_STORAGE_PREFIX
    return f"{slot_prefix}_{namespace}"


class CacheOptions(BaseModel):
    """Configuration for a single namespaced cache instance."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    ttl: float = Field(
        default_factory=lambda: get_settings().CACHE_DEFAULT_TTL_SECONDS,
        gt=0,
        description="Time to live for every entry, in seconds",
    )
    max_size: int = Field(
        default_factory=lambda: get_settings().CACHE_DEFAULT_MAX_SIZE,
        ge=1,
        description="Maximum number of entries",
    )
    strategy: EvictionStrategy = Field(
        default_factory=lambda: EvictionStrategy(get_settings().CACHE_DEFAULT_STRATEGY),
        description="Eviction strategy applied at capacity",
    )
    namespace: str = Field(
        default=DEFAULT_NAMESPACE, min_length=1, description="Storage namespace"
    )
    persistent: bool = Field(
        default=False, description="Persist entries through the storage port"
    )
    on_evict: Optional[Callable[[str, Any], Any]] = Field(
        default=None, description="Callback fired with (key, value) on eviction"
    )

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        """Entry lifetimes share the TTL bounds."""
        return TTL.of_seconds(v).seconds

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Namespaces become part of storage slot names."""
        if any(char.isspace() for char in v):
            raise ValueError("Cache namespace cannot contain whitespace")
        return v


class CacheStats(BaseModel):
    """Snapshot of cache occupancy and hit/miss counters."""

    size: int = Field(..., ge=0, description="Number of stored entries")
    capacity: int = Field(..., ge=1, description="Maximum number of entries")
    hits: int = Field(..., ge=0, description="Lookups that returned a value")
    misses: int = Field(..., ge=0, description="Lookups that returned nothing")
    hit_rate: float = Field(..., ge=0.0, le=1.0, description="hits / lookups")
    oldest_entry: Optional[float] = Field(
        None, description="Creation timestamp of the oldest entry"
    )
    newest_entry: Optional[float] = Field(
        None, description="Creation timestamp of the newest entry"
    )

    @staticmethod
    def compute_hit_rate(hits: int, misses: int) -> float:
        """Hit rate with zero lookups defined as 0.0."""
        total = hits + misses
        if total == 0:
            return 0.0
        return hits / total
