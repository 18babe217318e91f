"""Atomic local filesystem writes for cache entries and assets."""
