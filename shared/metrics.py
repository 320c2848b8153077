"""
Shared metrics configuration for the tiered cache.
"""

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional, Callable
import time
import functools
import threading
import asyncio
from contextlib import contextmanager


class CacheMetrics:
    """Prometheus metrics for cache tiers.

    Each instance owns its registry unless one is passed in, so several
    caches can live in one process without duplicate-series errors.
    """

    def __init__(self, component: str = "tiered_cache", registry: Optional[CollectorRegistry] = None):
        self.component = component
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache metrics."""
        self._metrics["cache_requests_total"] = Counter(
            "cache_requests_total",
            "Total cache lookups per tier",
            ["tier", "result"],
            registry=self.registry
        )

        self._metrics["cache_evictions_total"] = Counter(
            "cache_evictions_total",
            "Total entries evicted by capacity pressure",
            ["tier"],
            registry=self.registry
        )

        self._metrics["cache_promotions_total"] = Counter(
            "cache_promotions_total",
            "Total disk hits promoted into memory",
            registry=self.registry
        )

        self._metrics["cache_entries"] = Gauge(
            "cache_entries",
            "Current number of entries per tier",
            ["tier"],
            registry=self.registry
        )

        self._metrics["cache_operation_duration_seconds"] = Histogram(
            "cache_operation_duration_seconds",
            "Cache operation duration in seconds",
            ["operation"],
            registry=self.registry
        )

        self._metrics["cache_errors_total"] = Counter(
            "cache_errors_total",
            "Total tier errors",
            ["tier", "error_code"],
            registry=self.registry
        )

    def record_lookup(self, tier: str, hit: bool):
        """Record a hit or miss on a tier."""
        self._metrics["cache_requests_total"].labels(tier=tier, result="hit" if hit else "miss").inc()

    def record_evictions(self, tier: str, count: int):
        """Record capacity evictions."""
        if count > 0:
            self._metrics["cache_evictions_total"].labels(tier=tier).inc(count)

    def record_promotion(self):
        """Record a disk-to-memory promotion."""
        self._metrics["cache_promotions_total"].inc()

    def record_error(self, tier: str, error_code: str):
        """Record a tier error."""
        self._metrics["cache_errors_total"].labels(tier=tier, error_code=error_code).inc()

    def set_entries(self, tier: str, count: int):
        """Set current tier entry count."""
        self._metrics["cache_entries"].labels(tier=tier).set(count)

    @contextmanager
    def time_operation(self, operation: str):
        """Context manager to time a cache operation."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            self._metrics["cache_operation_duration_seconds"].labels(operation=operation).observe(duration)

    def sample(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter or gauge sample."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        with self._lock:
            return generate_latest(self.registry)


def _resolve(collector: Optional[CacheMetrics], args: tuple) -> Optional[CacheMetrics]:
    if collector is None and args:
        return getattr(args[0], "metrics", None)
    return collector


def measure_time(operation: str, collector: Optional[CacheMetrics] = None):
    """Decorator to measure function execution time."""
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                metrics = _resolve(collector, args)
                if metrics is None:
                    return await func(*args, **kwargs)
                with metrics.time_operation(operation):
                    return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            metrics = _resolve(collector, args)
            if metrics is None:
                return func(*args, **kwargs)
            with metrics.time_operation(operation):
                return func(*args, **kwargs)

        return sync_wrapper
    return decorator
