"""Metrics collection for observability."""

import time
from typing import Dict, Any, Optional
from collections import defaultdict

from replycore.utils.logger import get_logger

logger = get_logger(__name__)

# Histograms keep a bounded window of recent values
HISTOGRAM_WINDOW = 1000


class MetricsCollector:
    """Collects and tracks metrics for monitoring."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.enabled = self.config.get('metrics_enabled', True)

        self.counters = defaultdict(int)
        self.histograms = defaultdict(list)
        self.gauges = {}

        self.start_time = time.time()

    def increment_counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        """Increment a counter metric."""
        if not self.enabled:
            return

        key = self._make_key(name, labels)
        self.counters[key] += value

    def record_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Record a value in a histogram."""
        if not self.enabled:
            return

        key = self._make_key(name, labels)
        self.histograms[key].append(value)
        if len(self.histograms[key]) > HISTOGRAM_WINDOW:
            self.histograms[key] = self.histograms[key][-HISTOGRAM_WINDOW:]

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Set a gauge value."""
        if not self.enabled:
            return

        key = self._make_key(name, labels)
        self.gauges[key] = value

    def _make_key(self, name: str, labels: Optional[Dict[str, str]] = None) -> str:
        if not labels:
            return name

        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def get_metrics(self) -> Dict[str, Any]:
        """Get all metrics in Prometheus-compatible naming."""
        metrics = {}

        for key, value in self.counters.items():
            metrics[f"{key}_total"] = value

        # Histograms are summarized as avg/min/max/count
        for key, values in self.histograms.items():
            if values:
                metrics[f"{key}_avg"] = sum(values) / len(values)
                metrics[f"{key}_min"] = min(values)
                metrics[f"{key}_max"] = max(values)
                metrics[f"{key}_count"] = len(values)

        for key, value in self.gauges.items():
            metrics[key] = value

        metrics["uptime_seconds"] = time.time() - self.start_time
        return metrics

    def record_provider_attempt(
        self,
        provider: str,
        success: bool,
        latency_ms: int,
        tokens_used: int = 0,
    ):
        """Record the outcome of one provider attempt."""
        status = "success" if success else "error"
        self.increment_counter("provider_attempts", labels={"provider": provider, "status": status})
        self.record_histogram("provider_latency_ms", latency_ms, labels={"provider": provider})

        if success:
            self.increment_counter("tokens_processed", tokens_used, labels={"provider": provider})
            self.set_gauge("last_completion_latency_ms", latency_ms)
        else:
            self.increment_counter("provider_failures", labels={"provider": provider})

    def record_routing(self, provider: str, escalated: bool):
        """Record which provider served a routed request."""
        self.increment_counter("routed_requests", labels={"provider": provider})
        if escalated:
            self.increment_counter("escalations", labels={"provider": provider})

    def record_reply(self, needs_human: bool, fallback: Optional[str] = None):
        """Record a generated reply artifact."""
        self.increment_counter("replies", labels={"needs_human": str(needs_human).lower()})
        if fallback:
            self.increment_counter("reply_fallbacks", labels={"state": fallback})

        logger.debug(
            "Reply metrics recorded",
            extra={"success": not needs_human, "reason": fallback or "accepted"},
        )


def create_metrics_collector(config: Optional[Dict[str, Any]] = None) -> MetricsCollector:
    """Create a metrics collector from the ``observability`` config section."""
    return MetricsCollector(config or {})
