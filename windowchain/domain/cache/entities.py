"""
Cache Domain Entities

Core domain entities for cache management.
Encapsulates entry metadata and the expiry rule.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class CacheEntry:
    """
    Cached value with expiry and access metadata.

    The value is immutable once stored; only access metadata changes on
    reads. ``insertion_order`` and ``access_order`` are monotonic ordinals
    handed out by the owning store and break ties between equal timestamps.
    """

    value: Any
    created_at: float
    expires_at: float
    last_accessed_at: float
    hit_count: int = 0
    insertion_order: int = 0
    access_order: int = 0

    @classmethod
    def create(
        cls, value: Any, now: float, ttl_seconds: float, order: int
    ) -> "CacheEntry":
        """Create new cache entry."""
        return cls(
            value=value,
            created_at=now,
            expires_at=now + ttl_seconds,
            last_accessed_at=now,
            hit_count=0,
            insertion_order=order,
            access_order=order,
        )

    def is_expired(self, now: float) -> bool:
        """Expired strictly after the expiry timestamp."""
        return now > self.expires_at

    def access(self, now: float, order: int) -> None:
        """Record access to cache entry."""
        self.hit_count += 1
        self.last_accessed_at = now
        self.access_order = order

    def metadata(self) -> Dict[str, Any]:
        """Metadata without the value, as persisted under "meta"."""
        return {
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "last_accessed_at": self.last_accessed_at,
            "hit_count": self.hit_count,
            "insertion_order": self.insertion_order,
            "access_order": self.access_order,
        }

    @classmethod
    def from_persisted(cls, value: Any, meta: Dict[str, Any]) -> "CacheEntry":
        """Rebuild an entry from its persisted value and metadata."""
        return cls(
            value=value,
            created_at=float(meta["created_at"]),
            expires_at=float(meta["expires_at"]),
            last_accessed_at=float(meta.get("last_accessed_at", meta["created_at"])),
            hit_count=int(meta.get("hit_count", 0)),
            insertion_order=int(meta.get("insertion_order", 0)),
            access_order=int(meta.get("access_order", 0)),
        )
