"""
Infrastructure Module

Adapters for external storage used by persistent caches.
"""
