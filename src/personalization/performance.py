"""Personalization performance telemetry.

Keeps rolling timing samples reported by the storefront (page load, section
render and recommendation algorithm times, in milliseconds) and summarizes
them together with the engagement metrics.
"""

import logging
from typing import Dict, List

import numpy as np

from src.personalization.models import PersonalizationMetrics
from src.personalization.storage import KeyValueStore, StorageKeys

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 50
SERIES = ("loadTimes", "renderTimes", "algorithmTimes")


def engagement_rate(metrics: PersonalizationMetrics) -> float:
    """Clicks per impression, as a percentage."""
    if metrics.impressions == 0:
        return 0.0
    return metrics.clicks / metrics.impressions * 100


def feedback_quality(metrics: PersonalizationMetrics) -> float:
    """Share of feedback that marked recommendations relevant, as a percentage."""
    total = metrics.feedback.positive + metrics.feedback.negative
    if total == 0:
        return 0.0
    return metrics.feedback.positive / total * 100


def percentile(samples: List[float], pct: float) -> float:
    """Nearest-rank percentile: the smallest sample covering ``pct`` percent."""
    if not samples:
        return 0.0
    return float(np.percentile(samples, pct, method="inverted_cdf"))


class PerformanceLog:
    """Rolling timing samples kept in the personalization store.

    Args:
        store: Key-value store to persist samples in.
        max_samples: Samples kept per series; older ones are dropped.
    """

    def __init__(self, store: KeyValueStore, max_samples: int = DEFAULT_MAX_SAMPLES):
        self.store = store
        self.max_samples = max_samples

    def samples(self) -> Dict[str, List[float]]:
        raw = self.store.read_json(StorageKeys.PERFORMANCE_DATA, default={})
        if not isinstance(raw, dict):
            raw = {}
        return {name: [float(v) for v in raw.get(name, [])] for name in SERIES}

    def record(self, load_ms: float, render_ms: float, algorithm_ms: float) -> None:
        """Append one sample to each series."""
        with self.store.lock(StorageKeys.PERFORMANCE_DATA):
            data = self.samples()
            for name, value in zip(SERIES, (load_ms, render_ms, algorithm_ms)):
                data[name] = (data[name] + [float(value)])[-self.max_samples:]
            self.store.write_json(StorageKeys.PERFORMANCE_DATA, data)

    def summary(self) -> Dict[str, Dict[str, float]]:
        """Average, 95th percentile and maximum of each series."""
        result = {}
        for name, values in self.samples().items():
            result[name] = {
                "count": len(values),
                "average_ms": round(float(np.mean(values)), 2) if values else 0.0,
                "p95_ms": round(percentile(values, 95), 2),
                "max_ms": round(max(values, default=0.0), 2),
            }
        return result

    def reset(self) -> None:
        with self.store.lock(StorageKeys.PERFORMANCE_DATA):
            self.store.remove(StorageKeys.PERFORMANCE_DATA)
        logger.info("Cleared personalization performance data")
