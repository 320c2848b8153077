"""
Shared utilities for the tiered cache.

This package aggregates the ambient building blocks used by the cache
and the persistence stores:

- config: Settings via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Do not import from tiered_cache into shared/.
"""
