"""In-process counters and histograms for bptflistings.

Metrics are kept in memory so a long-running listing bot can log a summary
or expose Prometheus text without extra services.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping

LabelKey = tuple[tuple[str, str | None], ...]


def _labels_to_key(labels: Mapping[str, str | None] | None) -> LabelKey:
    if labels is None:
        return ()
    return tuple(sorted(labels.items()))


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(
        self, value: float = 1.0, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float:
        key = _labels_to_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)


@dataclass
class Histogram:
    """Keeps raw observations; summaries are computed on demand."""

    name: str
    help_text: str = ""
    _observations: dict[LabelKey, list[float]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(
        self, value: float, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._observations[key].append(value)

    def get_stats(
        self, labels: Mapping[str, str | None] | None = None
    ) -> dict[str, float]:
        key = _labels_to_key(labels)
        with self._lock:
            values = list(self._observations.get(key, ()))
        if not values:
            return {"count": 0, "sum": 0.0, "avg": 0.0}
        total = sum(values)
        return {"count": len(values), "sum": total, "avg": total / len(values)}


class MetricRegistry:
    """Registry holding every counter and histogram by name."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.counter(name, help_text).inc(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.histogram(name, help_text).observe(value, labels)


class Timer:
    """Context manager that records the elapsed time into a histogram."""

    def __init__(
        self,
        histogram_name: str,
        labels: Mapping[str, str | None] | None = None,
        help_text: str = "",
    ) -> None:
        self.histogram_name = histogram_name
        self.labels = labels
        self.help_text = help_text
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: object) -> None:
        observe_histogram(
            self.histogram_name,
            time.perf_counter() - self._start,
            self.labels,
            self.help_text,
        )


API_REQUESTS = "bptf_api_requests_total"
API_REQUEST_DURATION = "bptf_api_request_duration_seconds"
FLUSHES = "bptf_flushes_total"
FLUSH_DURATION = "bptf_flush_duration_seconds"
LISTING_ACTIONS = "bptf_listing_actions_total"
LISTING_REFRESH_DURATION = "bptf_listing_refresh_duration_seconds"


def record_api_request(
    endpoint: str, method: str, status_code: int, duration: float
) -> None:
    """Record one call to the classifieds API."""
    increment_counter(
        API_REQUESTS,
        labels={"endpoint": endpoint, "method": method, "status": str(status_code)},
        help_text="Total backpack.tf API requests",
    )
    observe_histogram(
        API_REQUEST_DURATION,
        duration,
        labels={"endpoint": endpoint, "method": method},
        help_text="backpack.tf API request duration in seconds",
    )


def record_flush(status: str, duration: float) -> None:
    """Record a finished flush; ``status`` is ``ok`` or ``failed``."""
    increment_counter(FLUSHES, labels={"status": status}, help_text="Total flushes")
    observe_histogram(
        FLUSH_DURATION,
        duration,
        labels={"status": status},
        help_text="Flush duration in seconds",
    )


def record_listing_action(action: str, outcome: str) -> None:
    """Count per-listing outcomes (``create``/``delete`` x ``ok``/``retry``/...)."""
    increment_counter(
        LISTING_ACTIONS,
        labels={"action": action, "outcome": outcome},
        help_text="Per-listing action outcomes",
    )


def get_metrics_summary() -> dict[str, object]:
    """Return every metric as nested dictionaries for logging."""
    counters: dict[str, dict[str, float]] = {}
    histograms: dict[str, dict[str, dict[str, float]]] = {}

    for name, counter in _registry.all_counters().items():
        counters[name] = {
            (",".join(f"{k}={v}" for k, v in key) or "default"): value
            for key, value in counter._values.items()
        }

    for name, histogram in _registry.all_histograms().items():
        histograms[name] = {
            (",".join(f"{k}={v}" for k, v in key) or "default"): histogram.get_stats(
                dict(key) if key else None
            )
            for key in list(histogram._observations)
        }

    return {"counters": counters, "histograms": histograms}


def format_prometheus() -> str:
    """Render all metrics in the Prometheus text exposition format."""
    lines: list[str] = []

    for name, counter in _registry.all_counters().items():
        if counter.help_text:
            lines.append(f"# HELP {name} {counter.help_text}")
        lines.append(f"# TYPE {name} counter")
        for key, value in counter._values.items():
            if key:
                label_str = ",".join(f'{k}="{v}"' for k, v in key)
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

    for name, histogram in _registry.all_histograms().items():
        if histogram.help_text:
            lines.append(f"# HELP {name} {histogram.help_text}")
        lines.append(f"# TYPE {name} summary")
        for key in list(histogram._observations):
            stats = histogram.get_stats(dict(key) if key else None)
            suffix = ""
            if key:
                suffix = "{" + ",".join(f'{k}="{v}"' for k, v in key) + "}"
            lines.append(f"{name}_count{suffix} {stats['count']}")
            lines.append(f"{name}_sum{suffix} {stats['sum']}")

    return "\n".join(lines)


__all__ = [
    "API_REQUESTS",
    "Counter",
    "FLUSHES",
    "LISTING_ACTIONS",
    "LISTING_REFRESH_DURATION",
    "Histogram",
    "MetricRegistry",
    "Timer",
    "format_prometheus",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_api_request",
    "record_flush",
    "record_listing_action",
]
