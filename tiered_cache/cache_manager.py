"""
Tiered cache coordinator.

Presents one async key/value interface over a bounded memory tier and a
bounded disk tier. Each tier is owned by its own TierWorker, so requests
against a tier are serialized while the two tiers run independently.
There is no cross-tier transaction: a write can land in memory and fail on
disk, which is reported as a PARTIAL result rather than rolled back.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from shared.config import CacheConfig, get_config
from shared.errors import CacheEncodeError, CacheLayerException, TierUnavailableError
from shared.logging import get_logger, set_cache_key
from shared.metrics import CacheMetrics, measure_time

from .results import CacheResult, CacheStatus
from .tiers.disk import DiskTier
from .tiers.memory import MemoryTier
from .tiers.worker import TierWorker

MEMORY = "memory"
DISK = "disk"


class TieredCache:
    """Memory-then-disk cache with write-through and read-through promotion."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        memory_max_entries: Optional[int] = None,
        disk_max_entries: Optional[int] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        metrics: Optional[CacheMetrics] = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger("tiered_cache.cache_manager")

        self.memory_max_entries = memory_max_entries or self.config.memory_max_entries
        self.disk_max_entries = disk_max_entries or self.config.disk_max_entries
        self.cache_dir = Path(cache_dir) if cache_dir is not None else self.config.disk_cache_dir

        if metrics is None and self.config.enable_metrics:
            metrics = CacheMetrics()
        self.metrics = metrics

        self.memory_tier = MemoryTier(self.memory_max_entries)
        self.disk_tier: Optional[DiskTier] = None
        self._disk_error: Optional[CacheLayerException] = None

        self.memory_worker = TierWorker(MEMORY)
        self.disk_worker = TierWorker(DISK, blocking=True)

        self.counters: Dict[str, int] = {
            "memory_hits": 0,
            "disk_hits": 0,
            "misses": 0,
            "promotions": 0,
            "writes": 0,
            "partial_failures": 0,
            "failures": 0,
        }

    @property
    def running(self) -> bool:
        return self.memory_worker.running

    async def start(self):
        """Open the disk directory and start both tier workers.

        A disk directory that cannot be created does not stop the memory
        tier; disk operations then report the creation error.
        """
        if self.running:
            return

        if self.disk_tier is None:
            try:
                self.disk_tier = DiskTier(self.cache_dir, self.disk_max_entries)
                self._disk_error = None
            except CacheLayerException as e:
                self._disk_error = e
                self.logger.error("Disk tier unavailable", path=str(self.cache_dir), error=e.message)

        await self.memory_worker.start()
        if self.disk_tier is not None:
            await self.disk_worker.start()

        self.logger.info(
            "Tiered cache started",
            memory_max_entries=self.memory_max_entries,
            disk_max_entries=self.disk_max_entries,
            cache_dir=str(self.cache_dir),
            disk_available=self.disk_tier is not None,
        )

    async def stop(self):
        """Stop both tier workers."""
        await self.memory_worker.stop()
        await self.disk_worker.stop()
        self.logger.info("Tiered cache stopped")

    async def __aenter__(self) -> "TieredCache":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def _memory(self, method: str, *args: Any) -> Any:
        return await self.memory_worker.submit(getattr(self.memory_tier, method), *args)

    async def _disk(self, method: str, *args: Any) -> Any:
        if self.disk_tier is None:
            raise self._disk_error or TierUnavailableError(DISK)
        return await self.disk_worker.submit(getattr(self.disk_tier, method), *args)

    @measure_time("put")
    async def put(self, key: str, value: bytes) -> CacheResult:
        """Write ``value`` to memory, then to disk, then run disk cleanup."""
        set_cache_key(key)
        errors: Dict[str, CacheLayerException] = {}

        if not isinstance(value, (bytes, bytearray, memoryview)):
            error = CacheEncodeError(
                f"Cache values must be bytes, got {type(value).__name__}",
                details={"type": type(value).__name__},
            )
            errors = {MEMORY: error, DISK: error}
            return self._finish(CacheResult.from_tiers("put", key, 2, errors))
        value = bytes(value)

        try:
            evicted = await self._memory("set", key, value)
            self._record_evictions(MEMORY, evicted)
        except CacheLayerException as e:
            errors[MEMORY] = e

        try:
            evicted = await self._disk("set", key, value)
            self._record_evictions(DISK, evicted)
        except CacheLayerException as e:
            errors[DISK] = e

        if len(errors) < 2:
            self.counters["writes"] += 1
        return self._finish(CacheResult.from_tiers("put", key, 2, errors))

    @measure_time("get")
    async def get(self, key: str) -> CacheResult:
        """Look in memory, then disk; a disk hit is promoted into memory.

        Missing and undecodable disk entries are both reported as a miss.
        Promotion is skipped when memory changed while disk was being read,
        so a concurrent put, remove or clear is never undone.
        """
        set_cache_key(key)
        errors: Dict[str, CacheLayerException] = {}

        value: Optional[bytes] = None
        generation: Optional[int] = None
        try:
            value, generation = await self._memory("lookup", key)
        except CacheLayerException as e:
            errors[MEMORY] = e

        if value is not None:
            self.counters["memory_hits"] += 1
            self._record_lookup(MEMORY, True)
            return self._finish(CacheResult.from_tiers("get", key, 2, errors, value=value, tier=MEMORY))
        if MEMORY not in errors:
            self._record_lookup(MEMORY, False)

        try:
            value = await self._disk("get", key)
        except CacheLayerException as e:
            errors[DISK] = e

        if value is None:
            if DISK not in errors:
                self._record_lookup(DISK, False)
            self.counters["misses"] += 1
            return self._finish(CacheResult.from_tiers("get", key, 2, errors))

        self.counters["disk_hits"] += 1
        self._record_lookup(DISK, True)

        if generation is not None:
            try:
                evicted = await self._memory("promote", key, value, generation)
            except CacheLayerException as e:
                errors[MEMORY] = e
            else:
                if evicted is None:
                    self.logger.debug("Skipped promotion, memory changed during disk read", key=key)
                else:
                    self._record_evictions(MEMORY, evicted)
                    self.counters["promotions"] += 1
                    if self.metrics:
                        self.metrics.record_promotion()

        return self._finish(CacheResult.from_tiers("get", key, 2, errors, value=value, tier=DISK))

    @measure_time("remove")
    async def remove(self, key: str) -> CacheResult:
        """Delete ``key`` from both tiers. Absent keys are not an error."""
        set_cache_key(key)
        errors: Dict[str, CacheLayerException] = {}

        try:
            await self._memory("remove", key)
        except CacheLayerException as e:
            errors[MEMORY] = e

        try:
            await self._disk("remove", key)
        except CacheLayerException as e:
            errors[DISK] = e

        return self._finish(CacheResult.from_tiers("remove", key, 2, errors))

    @measure_time("clear")
    async def clear(self) -> CacheResult:
        """Empty the memory tier and recreate the disk directory."""
        set_cache_key(None)
        errors: Dict[str, CacheLayerException] = {}

        try:
            await self._memory("clear")
        except CacheLayerException as e:
            errors[MEMORY] = e

        try:
            await self._disk("clear")
            if self.metrics:
                self.metrics.set_entries(DISK, 0)
        except CacheLayerException as e:
            errors[DISK] = e

        result = self._finish(CacheResult.from_tiers("clear", None, 2, errors))
        if result.ok:
            self.logger.info("Cleared cache", cache_dir=str(self.cache_dir))
        return result

    async def memory_size(self) -> int:
        """Number of entries currently held in memory."""
        return await self._memory("size")

    async def disk_size(self) -> int:
        """Number of entry files currently on disk."""
        size = await self._disk("size")
        if self.metrics:
            self.metrics.set_entries(DISK, size)
        return size

    async def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        stats: Dict[str, Any] = {
            "running": self.running,
            "cache_dir": str(self.cache_dir),
            "memory": {"max_entries": self.memory_max_entries, "evictions": self.memory_tier.evictions},
            "disk": {
                "max_entries": self.disk_max_entries,
                "evictions": self.disk_tier.evictions if self.disk_tier else 0,
            },
            **self.counters,
        }

        try:
            stats["memory"]["entries"] = await self.memory_size()
        except CacheLayerException as e:
            stats["memory"]["error"] = e.message

        try:
            stats["disk"]["entries"] = await self.disk_size()
        except CacheLayerException as e:
            stats["disk"]["error"] = e.message

        return stats

    def _finish(self, result: CacheResult) -> CacheResult:
        """Log and count tier errors carried by a result."""
        if self.metrics:
            self.metrics.set_entries(MEMORY, self.memory_tier.size())
            for tier, error in result.errors.items():
                self.metrics.record_error(tier, error.code)

        if result.status == CacheStatus.PARTIAL:
            self.counters["partial_failures"] += 1
            self.logger.warning(
                "Cache operation partially failed",
                operation=result.operation,
                key=result.key,
                failed_tiers=sorted(result.errors),
                errors={tier: e.code for tier, e in result.errors.items()},
            )
        elif result.status == CacheStatus.FAILURE:
            self.counters["failures"] += 1
            self.logger.error(
                "Cache operation failed",
                operation=result.operation,
                key=result.key,
                errors={tier: e.message for tier, e in result.errors.items()},
            )
        return result

    def _record_lookup(self, tier: str, hit: bool):
        if self.metrics:
            self.metrics.record_lookup(tier, hit)

    def _record_evictions(self, tier: str, evicted):
        if evicted and self.metrics:
            self.metrics.record_evictions(tier, len(evicted))
