"""
Request metrics collection and Prometheus-compatible exposition.

Tracks request counts and latency per endpoint (method + route template).
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Any

# Latency samples kept per endpoint for percentile estimates
SAMPLE_SIZE = 1000


def _percentile(sorted_values: list[float], pct: float) -> float:
    if not sorted_values:
        return 0.0
    index = min(len(sorted_values) - 1, max(0, int(round(pct / 100 * len(sorted_values))) - 1))
    return sorted_values[index]


class EndpointStats:
    def __init__(self) -> None:
        self.count = 0
        self.errors = 0
        self.total_ms = 0.0
        self.min_ms: float | None = None
        self.max_ms = 0.0
        self.samples: deque[float] = deque(maxlen=SAMPLE_SIZE)

    def observe(self, duration_ms: float, status_code: int) -> None:
        self.count += 1
        if status_code >= 500:
            self.errors += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.samples.append(duration_ms)

    def to_dict(self) -> dict[str, Any]:
        ordered = sorted(self.samples)
        return {
            "count": self.count,
            "errors": self.errors,
            "avgMs": round(self.total_ms / self.count, 2) if self.count else 0.0,
            "minMs": round(self.min_ms or 0.0, 2),
            "maxMs": round(self.max_ms, 2),
            "p50Ms": round(_percentile(ordered, 50), 2),
            "p95Ms": round(_percentile(ordered, 95), 2),
            "p99Ms": round(_percentile(ordered, 99), 2),
        }


class MetricsCollector:
    """
    In-process request metrics with Prometheus text format export.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, EndpointStats] = defaultdict(EndpointStats)
        self._status_counts: dict[int, int] = defaultdict(int)
        self._start_time = time.time()

    def observe(self, method: str, path: str, status_code: int, duration_ms: float) -> None:
        self._endpoints[f"{method} {path}"].observe(duration_ms, status_code)
        self._status_counts[status_code] += 1

    def get(self, method: str, path: str) -> dict[str, Any] | None:
        stats = self._endpoints.get(f"{method} {path}")
        return stats.to_dict() if stats else None

    def reset(self) -> None:
        self._endpoints.clear()
        self._status_counts.clear()
        self._start_time = time.time()

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = ["# TYPE scheduleright_requests_total counter"]
        for key, stats in sorted(self._endpoints.items()):
            method, path = key.split(" ", 1)
            lines.append(
                f'scheduleright_requests_total{{method="{method}",path="{path}"}} {stats.count}'
            )
        lines.append("# TYPE scheduleright_request_duration_ms summary")
        for key, stats in sorted(self._endpoints.items()):
            method, path = key.split(" ", 1)
            data = stats.to_dict()
            labels = f'method="{method}",path="{path}"'
            for quantile, field in (("0.5", "p50Ms"), ("0.95", "p95Ms"), ("0.99", "p99Ms")):
                lines.append(
                    f'scheduleright_request_duration_ms{{{labels},quantile="{quantile}"}} {data[field]}'
                )
            lines.append(f"scheduleright_request_duration_ms_sum{{{labels}}} {stats.total_ms:.2f}")
            lines.append(f"scheduleright_request_duration_ms_count{{{labels}}} {stats.count}")
        lines.append("# TYPE scheduleright_responses_total counter")
        for status_code, count in sorted(self._status_counts.items()):
            lines.append(f'scheduleright_responses_total{{status="{status_code}"}} {count}')
        uptime = time.time() - self._start_time
        lines.append("# TYPE scheduleright_uptime_seconds gauge")
        lines.append(f"scheduleright_uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        """Export metrics as a dictionary."""
        return {
            "endpoints": {key: stats.to_dict() for key, stats in sorted(self._endpoints.items())},
            "statusCodes": {str(code): count for code, count in sorted(self._status_counts.items())},
            "uptimeSeconds": round(time.time() - self._start_time, 1),
        }

