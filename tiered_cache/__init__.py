"""
Tiered cache package.

A bounded in-memory LRU tier in front of a bounded on-disk tier, each
owned by its own async worker. Writes go through both tiers, reads fall
through to disk and promote hits back into memory. Every operation
returns a CacheResult instead of raising for tier failures.
"""

from .cache_manager import TieredCache
from .results import CacheResult, CacheStatus

__all__ = ["CacheResult", "CacheStatus", "TieredCache"]
