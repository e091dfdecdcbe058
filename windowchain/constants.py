"""
Application constants.

Shared defaults for cache storage slots and serialization.
"""

# Storage slots are named "<prefix>_<namespace>"
DEFAULT_STORAGE_PREFIX = "windowchain_cache"
DEFAULT_NAMESPACE = "default"

# Persisted payload layout
PERSISTED_ITEMS_KEY = "items"
PERSISTED_META_KEY = "meta"
