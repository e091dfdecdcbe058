"""
Domain Module

Domain-Driven Design implementation for cache management.
"""
