from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from statsd import StatsClient

from app.config import Settings, settings

logger = logging.getLogger("app.metrics")

METRIC_EVENT = "prospecting.metric"


def _statsd_name(name: str, tags: dict[str, Any]) -> str:
    """StatsD has no tags; fold them into the metric path in a stable order."""
    if not tags:
        return name
    suffix = ".".join(f"{key}_{tags[key]}" for key in sorted(tags))
    return f"{name}.{suffix}"


class MetricsReporter:
    """Counters, gauges and timings for discovery runs.

    Every sample is logged as a `prospecting.metric` debug event; when the statsd
    backend is configured the sample is also forwarded to StatsD.
    """

    def __init__(self, config: Settings | None = None) -> None:
        config = config or settings
        self._disabled = config.metrics_disable
        self._namespace = (config.metrics_namespace or "prospecting").strip(".")
        self._backend = (config.metrics_backend or "stdout").lower()
        self._sample_rate = max(0.0, min(config.metrics_sample_rate, 1.0))
        self._statsd: StatsClient | None = None
        if self._backend == "statsd" and not self._disabled:
            self._statsd = self._connect_statsd(config)

    def _connect_statsd(self, config: Settings) -> StatsClient | None:
        try:
            return StatsClient(host=config.metrics_statsd_host, port=config.metrics_statsd_port, prefix="")
        except OSError as exc:
            self._log_backend_error("statsd.connect", exc)
            return None

    def increment(self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("counter", metric, value, tags)

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("gauge", metric, value, tags)

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("timing", metric, value_ms, tags)

    @contextmanager
    def timer(self, metric: str, *, tags: dict[str, Any] | None = None) -> Iterator[None]:
        """Record the wall time of the wrapped block in milliseconds, even when it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(metric, (time.perf_counter() - start) * 1000, tags=tags)

    def _sampled_out(self, metric_type: str) -> bool:
        if metric_type == "gauge" or self._sample_rate >= 1.0:
            return False
        return secrets.randbelow(1_000_000) / 1_000_000 > self._sample_rate

    def _emit(self, metric_type: str, metric: str, value: float, tags: dict[str, Any] | None) -> None:
        if self._disabled or value is None or self._sampled_out(metric_type):
            return
        name = self.qualify(metric)
        tags = tags or {}
        rate = 1.0 if metric_type == "gauge" else self._sample_rate
        logger.debug(
            METRIC_EVENT,
            extra={
                "metrics": {
                    "metric": name,
                    "type": metric_type,
                    "value": round(float(value), 4),
                    "tags": tags,
                    "sample_rate": round(rate, 4),
                }
            },
        )
        if self._statsd is None:
            return
        target = _statsd_name(name, tags)
        try:
            if metric_type == "counter":
                self._statsd.incr(target, value, rate=rate)
            elif metric_type == "timing":
                self._statsd.timing(target, value, rate=rate)
            else:
                self._statsd.gauge(target, value)
        except OSError as exc:  # pragma: no cover
            self._log_backend_error(target, exc)

    def qualify(self, metric: str) -> str:
        trimmed = (metric or "").strip().strip(".")
        if not trimmed:
            return self._namespace
        if trimmed == self._namespace or trimmed.startswith(f"{self._namespace}."):
            return trimmed
        return f"{self._namespace}.{trimmed}"

    def _log_backend_error(self, metric: str, exc: Exception) -> None:
        logger.warning(
            "metrics.backend_error",
            extra={"metric": metric, "backend": self._backend, "error": type(exc).__name__},
        )


metrics = MetricsReporter()
