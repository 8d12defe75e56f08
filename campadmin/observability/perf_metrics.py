from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from math import ceil
from threading import Lock
from typing import Any

SLOWEST_LIMIT = 5


def _percentile(values: list[float], pct: int) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, min(len(ordered) - 1, ceil((pct / 100) * len(ordered)) - 1))
    return ordered[index]


@dataclass
class LatencySeries:
    """Rolling latency samples for one route or one gateway operation."""

    max_samples: int
    samples: deque[float] = field(init=False)
    failures: Counter[str] = field(default_factory=Counter)

    def __post_init__(self) -> None:
        self.samples = deque(maxlen=self.max_samples)

    def add(self, duration_ms: float, failure: str | None) -> None:
        self.samples.append(float(duration_ms))
        if failure:
            self.failures[failure] += 1

    def summary(self) -> dict[str, Any]:
        values = list(self.samples)
        if not values:
            return {"count": 0, "avg_ms": 0.0, "p50_ms": 0.0, "p95_ms": 0.0, "last_ms": 0.0, "failures": {}}
        return {
            "count": len(values),
            "avg_ms": round(sum(values) / len(values), 2),
            "p50_ms": round(_percentile(values, 50), 2),
            "p95_ms": round(_percentile(values, 95), 2),
            "last_ms": round(values[-1], 2),
            "failures": dict(self.failures),
        }


class PerformanceMetrics:
    def __init__(self, *, max_samples: int = 200) -> None:
        self._max_samples = max_samples
        self._lock = Lock()
        self._api: dict[str, LatencySeries] = {}
        self._gateway: dict[str, LatencySeries] = {}

    def record_api(self, key: str, duration_ms: float, status_code: int = 200) -> dict[str, Any]:
        """Record one request and return the route's updated summary."""
        failure = f"http_{status_code}" if status_code >= 500 else None
        with self._lock:
            series = self._series(self._api, key)
            series.add(duration_ms, failure)
            return series.summary()

    def record_gateway(self, key: str, duration_ms: float, error_code: str | None = None) -> None:
        with self._lock:
            self._series(self._gateway, key).add(duration_ms, error_code)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            api = {key: series.summary() for key, series in self._api.items()}
            gateway = {key: series.summary() for key, series in self._gateway.items()}
        slowest = sorted(gateway, key=lambda key: gateway[key]["p95_ms"], reverse=True)[:SLOWEST_LIMIT]
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "api": api,
            "gateway": gateway,
            "slowest_gateway_operations": slowest,
        }

    def clear(self) -> None:
        with self._lock:
            self._api.clear()
            self._gateway.clear()

    def _series(self, store: dict[str, LatencySeries], key: str) -> LatencySeries:
        series = store.get(key)
        if series is None:
            series = store[key] = LatencySeries(self._max_samples)
        return series


perf_metrics = PerformanceMetrics()
