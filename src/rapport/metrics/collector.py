"""In-process metrics collector.

Counters accumulate across runs in one process; gauges hold the latest
observed value (e.g. reminders per status).  Exported in the Prometheus
text exposition format.
"""

from __future__ import annotations

import threading
import time


class MetricsCollector:
    """Thread-safe in-process metrics collector."""

    def __init__(self, prefix: str = "rapport") -> None:
        self._prefix = prefix
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get(self, name: str, labels: dict | None = None) -> int:
        """Current value of a counter (0 if never incremented)."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def get_gauge(self, name: str, labels: dict | None = None) -> float | None:
        key = self._make_key(name, labels)
        with self._lock:
            return self._gauges.get(key)

    def export(self) -> str:
        """Export all metrics in Prometheus text format."""
        uptime = f"{self._prefix}_uptime_seconds"
        lines = [
            f"# HELP {uptime} Time since process start",
            f"# TYPE {uptime} gauge",
            f"{uptime} {time.time() - self._start_time:.1f}",
            "",
        ]

        with self._lock:
            for kind, values in (("counter", self._counters), ("gauge", self._gauges)):
                grouped: dict[str, list[tuple[str, float]]] = {}
                for key, value in sorted(values.items()):
                    grouped.setdefault(key.split("{")[0], []).append((key, value))
                for name, entries in sorted(grouped.items()):
                    lines.append(f"# TYPE {name} {kind}")
                    lines.extend(f"{key} {value}" for key, value in entries)
                    lines.append("")

        return "\n".join(lines) + "\n"

    def _make_key(self, name: str, labels: dict | None) -> str:
        full = name if name.startswith(f"{self._prefix}_") else f"{self._prefix}_{name}"
        if not labels:
            return full
        label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        return f"{full}{{{label_str}}}"
