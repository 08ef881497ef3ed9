"""
Cash-Up Engine - Metrics
========================
In-process counters.

Features:
- Named counters with optional dimension labels
- Thread-safe increments
- Snapshot for the health endpoint and tests
"""

import logging
import threading
from typing import Any

logger = logging.getLogger("cashup.observability")

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict | None) -> LabelKey:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


class MetricsRegistry:
    """
    Counter registry owned by the application and passed by reference.

    Usage:
        metrics.increment("cashup_reconciliations_total", labels={"balanced": "false"})
        metrics.get("cashup_reconciliations_total", {"balanced": "false"})
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, dict[LabelKey, float]] = {}

    def increment(self, metric_name: str, value: float = 1.0, labels: dict | None = None) -> None:
        """Record counter increment."""
        key = _label_key(labels)
        with self._lock:
            series = self._counters.setdefault(metric_name, {})
            series[key] = series.get(key, 0.0) + value

    def get(self, metric_name: str, labels: dict | None = None) -> float:
        with self._lock:
            return self._counters.get(metric_name, {}).get(_label_key(labels), 0.0)

    def total(self, metric_name: str) -> float:
        """Sum across every label set."""
        with self._lock:
            return sum(self._counters.get(metric_name, {}).values())

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        with self._lock:
            return {
                name: [{"labels": dict(key), "value": value} for key, value in series.items()]
                for name, series in self._counters.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
