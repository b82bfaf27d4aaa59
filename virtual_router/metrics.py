"""
Per-target outcome counters

Counters live in memory for the life of the router and reset on restart.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class TargetMetrics:
    requests: int = 0
    successes: int = 0
    failures: int = 0
    fallbacks: int = 0  # times this target was skipped to the next one
    total_latency_ms: float = 0.0

    @property
    def success_rate(self) -> Optional[float]:
        if self.requests == 0:
            return None
        return round(self.successes / self.requests * 100, 1)

    @property
    def avg_latency_ms(self) -> Optional[float]:
        if self.successes == 0:
            return None
        return round(self.total_latency_ms / self.successes)


class MetricsAggregator:
    """Lazily created counters keyed by target key"""

    def __init__(self):
        self._metrics: Dict[str, TargetMetrics] = {}
        self._lock = threading.Lock()

    def _get(self, key: str) -> TargetMetrics:
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = TargetMetrics()
            self._metrics[key] = metrics
        return metrics

    def record_success(self, key: str, latency_ms: float):
        with self._lock:
            m = self._get(key)
            m.requests += 1
            m.successes += 1
            m.total_latency_ms += latency_ms

    def record_failure(self, key: str):
        with self._lock:
            m = self._get(key)
            m.requests += 1
            m.failures += 1

    def record_fallback(self, key: str):
        with self._lock:
            self._get(key).fallbacks += 1

    def get(self, key: str) -> Optional[TargetMetrics]:
        with self._lock:
            m = self._metrics.get(key)
            return TargetMetrics(**vars(m)) if m else None

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """
        Summarize every observed target

        Returns:
            Target key -> requests, success_rate (percent), avg_latency_ms, fallbacks
        """
        with self._lock:
            return {
                key: {
                    "requests": m.requests,
                    "success_rate": m.success_rate,
                    "avg_latency_ms": m.avg_latency_ms,
                    "fallbacks": m.fallbacks,
                }
                for key, m in self._metrics.items()
            }

    def reset(self):
        with self._lock:
            self._metrics.clear()
