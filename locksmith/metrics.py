"""
Locksmith Metrics.

Prometheus metrics for rotations and token traffic, plus a simple in-memory
view of the same counters for health endpoints and tests.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)


class RotationMetrics:
    """
    Metrics collector for rotation engine operations.

    Each instance registers its collectors in its own CollectorRegistry
    unless one is passed in, so several engines can live in one process.

    Example:
        >>> metrics = RotationMetrics()
        >>> engine = RotationManager(policy, store, generator, metrics=metrics)
        >>> print(metrics.get_stats())
    """

    def __init__(self, namespace: str = "locksmith", registry: Optional[CollectorRegistry] = None):
        self._namespace = namespace
        self._registry = registry or CollectorRegistry()
        self._lock = threading.Lock()
        self._counters: Dict[str, float] = {}
        self._gauges: Dict[str, float] = {}

        self._rotations = Counter(
            f"{namespace}_rotations_total",
            "Total number of secret rotations",
            ["status"],
            registry=self._registry,
        )
        self._rotation_duration = Histogram(
            f"{namespace}_rotation_duration_seconds",
            "Time spent generating, storing and promoting a secret",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )
        self._previous_secrets = Gauge(
            f"{namespace}_previous_secrets",
            "Retired secrets still accepted for validation",
            registry=self._registry,
        )
        self._evictions = Counter(
            f"{namespace}_evictions_total",
            "Retired secrets dropped after their grace period",
            registry=self._registry,
        )
        self._signed = Counter(
            f"{namespace}_tokens_signed_total",
            "Total number of tokens signed",
            registry=self._registry,
        )
        self._validations = Counter(
            f"{namespace}_token_validations_total",
            "Total number of token validations",
            ["status"],
            registry=self._registry,
        )

    def _inc(self, key: str, amount: float = 1) -> None:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def record_rotation(self, success: bool) -> None:
        status = "success" if success else "failure"
        self._inc(f"rotations_{status}")
        self._rotations.labels(status=status).inc()

    def record_rotation_duration(self, duration_seconds: float) -> None:
        self._rotation_duration.observe(duration_seconds)

    def record_evictions(self, count: int) -> None:
        if count > 0:
            self._inc("evictions", count)
            self._evictions.inc(count)

    def set_previous_secrets(self, count: int) -> None:
        with self._lock:
            self._gauges["previous_secrets"] = count
        self._previous_secrets.set(count)

    def record_signature(self) -> None:
        self._inc("tokens_signed")
        self._signed.inc()

    def record_validation(self, status: str) -> None:
        """Record a validation outcome: "success" or the error class name."""
        self._inc(f"validations_{status}")
        self._validations.labels(status=status).inc()

    @contextmanager
    def rotation_timer(self):
        """Context manager for timing rotations."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_rotation_duration(time.perf_counter() - start)

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics as a dictionary."""
        with self._lock:
            stats: Dict[str, Any] = dict(self._counters)
            stats.update(self._gauges)

        total = stats.get("rotations_success", 0) + stats.get("rotations_failure", 0)
        if total > 0:
            stats["rotation_success_rate"] = stats.get("rotations_success", 0) / total
        return stats

    def get_prometheus_metrics(self) -> bytes:
        """Get metrics in Prometheus text format."""
        return generate_latest(self._registry)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry
