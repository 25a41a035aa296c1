"""Metrics service for tracking API performance.

Singleton service to track recommendation calls and their latency, per
operation (selection, scoring, sections, related products).
"""

import threading
from typing import Dict


class _OperationStats:
    __slots__ = ("count", "total_ms", "min_ms", "max_ms")

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float("inf")
        self.max_ms = 0.0

    def add(self, latency_ms: float) -> None:
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)

    def as_dict(self) -> Dict:
        return {
            "count": self.count,
            "average_latency_ms": round(self.total_ms / self.count, 2) if self.count else 0.0,
            "min_latency_ms": round(self.min_ms, 2) if self.count else 0.0,
            "max_latency_ms": round(self.max_ms, 2),
        }


class MetricsService:
    """Singleton service for tracking API metrics.

    Thread-safe call counters and latency tracking per operation.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize metrics counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._operations: Dict[str, _OperationStats] = {}
        self._initialized = True

    def record_call(self, operation: str, latency_ms: float) -> None:
        """Record one call of ``operation`` with its latency.

        Args:
            operation: Name of the operation, e.g. "recommend"
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            stats = self._operations.get(operation)
            if stats is None:
                stats = _OperationStats()
                self._operations[operation] = stats
            stats.add(latency_ms)

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with ``total_calls`` and, under ``operations``, the
            count and average/min/max latency of each operation.
        """
        with self._lock:
            return {
                "total_calls": sum(s.count for s in self._operations.values()),
                "operations": {
                    name: stats.as_dict() for name, stats in self._operations.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._operations = {}


# Global singleton instance
metrics_service = MetricsService()
