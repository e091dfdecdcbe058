"""
Services Module

Cache, pipeline and generation services.
"""
