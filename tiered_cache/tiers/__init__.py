"""
Cache tiers and the worker that serializes access to each one.
"""

from .disk import DiskTier
from .memory import MemoryTier
from .worker import TierWorker

__all__ = ["DiskTier", "MemoryTier", "TierWorker"]
