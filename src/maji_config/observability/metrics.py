"""Thread-safe refresh metrics with Prometheus text export."""

from __future__ import annotations

import threading

from maji_config.errors import ConfigClientError

_DESCRIPTIONS = {
    "maji_config_refresh_total": "Total config fetches by outcome",
    "maji_config_refresh_errors_total": "Total failed config fetches by error code",
    "maji_config_fetch_duration_seconds": "Config fetch duration",
}

_LabelsKey = tuple[tuple[str, str], ...]


class MetricsCollector:
    """In-memory counters and a duration histogram for config fetches."""

    DEFAULT_BUCKETS: list[float] = [0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]

    def __init__(self, buckets: list[float] | None = None) -> None:
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS
        self._buckets = sorted(buckets)
        self._lock = threading.Lock()
        self._counters: dict[tuple[str, _LabelsKey], int] = {}
        self._histogram_sums: dict[tuple[str, _LabelsKey], float] = {}
        self._histogram_counts: dict[tuple[str, _LabelsKey], int] = {}
        self._histogram_buckets: dict[tuple[str, _LabelsKey, float], int] = {}

    @staticmethod
    def _labels_key(labels: dict[str, str]) -> _LabelsKey:
        return tuple(sorted(labels.items()))

    def increment(self, name: str, labels: dict[str, str], amount: int = 1) -> None:
        key = (name, self._labels_key(labels))
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def observe(self, name: str, labels: dict[str, str], value: float) -> None:
        labels_key = self._labels_key(labels)
        key = (name, labels_key)
        with self._lock:
            self._histogram_sums[key] = self._histogram_sums.get(key, 0.0) + value
            self._histogram_counts[key] = self._histogram_counts.get(key, 0) + 1
            for b in [*self._buckets, float("inf")]:
                if value <= b:
                    bkey = (name, labels_key, b)
                    count = self._histogram_buckets.get(bkey, 0)
                    self._histogram_buckets[bkey] = count + 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "histograms": {
                    "sums": dict(self._histogram_sums),
                    "counts": dict(self._histogram_counts),
                    "buckets": dict(self._histogram_buckets),
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histogram_sums.clear()
            self._histogram_counts.clear()
            self._histogram_buckets.clear()

    def export_prometheus(self) -> str:
        with self._lock:
            lines: list[str] = []

            seen: set[str] = set()
            for (name, labels_tuple), value in sorted(self._counters.items()):
                if name not in seen:
                    lines.append(f"# HELP {name} {_DESCRIPTIONS.get(name, name)}")
                    lines.append(f"# TYPE {name} counter")
                    seen.add(name)
                lines.append(f"{name}{self._format_labels(dict(labels_tuple))} {value}")

            for name, labels_tuple in sorted(self._histogram_sums):
                if name not in seen:
                    lines.append(f"# HELP {name} {_DESCRIPTIONS.get(name, name)}")
                    lines.append(f"# TYPE {name} histogram")
                    seen.add(name)

                labels_dict = dict(labels_tuple)
                for b in [*self._buckets, float("inf")]:
                    count = self._histogram_buckets.get((name, labels_tuple, b), 0)
                    le = "+Inf" if b == float("inf") else f"{b:g}"
                    bucket_labels = self._format_labels({**labels_dict, "le": le})
                    lines.append(f"{name}_bucket{bucket_labels} {count}")

                labels_str = self._format_labels(labels_dict)
                total = self._histogram_sums[(name, labels_tuple)]
                count = self._histogram_counts[(name, labels_tuple)]
                lines.append(f"{name}_sum{labels_str} {total}")
                lines.append(f"{name}_count{labels_str} {count}")

            return "\n".join(lines) + "\n" if lines else ""

    @staticmethod
    def _format_labels(labels: dict[str, str]) -> str:
        if not labels:
            return ""
        # 'le' goes last on bucket lines
        sorted_items = sorted(labels.items(), key=lambda x: (x[0] == "le", x[0]))
        return "{" + ",".join(f'{k}="{v}"' for k, v in sorted_items) + "}"

    # --- Convenience methods ---

    def record_success(self, duration_seconds: float) -> None:
        self.increment("maji_config_refresh_total", {"status": "success"})
        self.observe("maji_config_fetch_duration_seconds", {}, duration_seconds)

    def record_failure(self, error: Exception, duration_seconds: float) -> None:
        if isinstance(error, ConfigClientError):
            error_code = error.code
        else:
            error_code = type(error).__name__
        self.increment("maji_config_refresh_total", {"status": "error"})
        self.increment("maji_config_refresh_errors_total", {"error_code": error_code})
        self.observe("maji_config_fetch_duration_seconds", {}, duration_seconds)


__all__ = ["MetricsCollector"]
