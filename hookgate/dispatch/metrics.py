"""
Process-local metrics for the dispatch engine, exported at /metrics.

Counters cover notifications, deliveries, gate decisions and listener
reconnects; ``listener_connected`` is a gauge; delivery latency is a
summary (``_sum`` / ``_count``).
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

PREFIX = "hookgate_"

HELP = {
    "notifications_received_total": "Change notifications read from the channel",
    "notifications_dropped_total": "Notifications dropped (malformed or registry unavailable)",
    "deliveries_sent_total": "Webhook deliveries answered with 2xx",
    "deliveries_failed_total": "Webhook deliveries that failed or timed out",
    "gate_allowed_total": "Guarded calls allowed by the gatekeeper gate",
    "gate_blocked_total": "Guarded calls blocked by the gatekeeper gate",
    "listener_reconnects_total": "LISTEN connection re-establishment attempts",
    "listener_connected": "1 while the LISTEN connection is up",
    "delivery_duration_seconds": "Outbound delivery latency",
}


class MetricsCollector:
    """Counters, gauges and summaries rendered in Prometheus text format."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._summaries: dict[str, list[float]] = defaultdict(lambda: [0.0, 0])
        self._started = time.monotonic()

    def inc(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def observe(self, name: str, value: float) -> None:
        """Add one observation to a summary."""
        summary = self._summaries[name]
        summary[0] += value
        summary[1] += 1

    def get(self, name: str) -> int | float:
        if name in self._gauges:
            return self._gauges[name]
        return self._counters.get(name, 0)

    def summary(self, name: str) -> tuple[float, int]:
        total, count = self._summaries.get(name, (0.0, 0))
        return total, count

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._started

    def to_prometheus(self) -> str:
        lines: list[str] = []

        def header(name: str, kind: str) -> None:
            if name in HELP:
                lines.append(f"# HELP {PREFIX}{name} {HELP[name]}")
            lines.append(f"# TYPE {PREFIX}{name} {kind}")

        for name, value in sorted(self._counters.items()):
            header(name, "counter")
            lines.append(f"{PREFIX}{name} {value}")
        for name, value in sorted(self._gauges.items()):
            header(name, "gauge")
            lines.append(f"{PREFIX}{name} {value}")
        for name, (total, count) in sorted(self._summaries.items()):
            header(name, "summary")
            lines.append(f"{PREFIX}{name}_sum {total:.6f}")
            lines.append(f"{PREFIX}{name}_count {count}")

        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {self.uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "summaries": {
                name: {"sum": total, "count": count}
                for name, (total, count) in self._summaries.items()
            },
            "uptime_seconds": self.uptime,
        }
