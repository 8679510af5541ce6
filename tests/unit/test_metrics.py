"""Unit tests for metrics collection."""

from replycore.infrastructure.observability.metrics import MetricsCollector, create_metrics_collector


def test_provider_attempts(metrics):
    metrics.record_provider_attempt("groq", False, 120)
    metrics.record_provider_attempt("deepseek", True, 80, tokens_used=150)

    snapshot = metrics.get_metrics()

    assert snapshot["provider_attempts{provider=groq,status=error}_total"] == 1
    assert snapshot["provider_failures{provider=groq}_total"] == 1
    assert snapshot["provider_attempts{provider=deepseek,status=success}_total"] == 1
    assert snapshot["tokens_processed{provider=deepseek}_total"] == 150
    assert snapshot["provider_latency_ms{provider=deepseek}_avg"] == 80
    assert snapshot["last_completion_latency_ms"] == 80
    assert snapshot["uptime_seconds"] >= 0


def test_routing_and_replies(metrics):
    metrics.record_routing("openai", escalated=True)
    metrics.record_reply(needs_human=True, fallback="raw_fallback")

    snapshot = metrics.get_metrics()

    assert snapshot["routed_requests{provider=openai}_total"] == 1
    assert snapshot["escalations{provider=openai}_total"] == 1
    assert snapshot["replies{needs_human=true}_total"] == 1
    assert snapshot["reply_fallbacks{state=raw_fallback}_total"] == 1


def test_histogram_window_is_bounded(metrics):
    for i in range(1500):
        metrics.record_histogram("latency", i)

    assert metrics.get_metrics()["latency_count"] == 1000
    assert metrics.get_metrics()["latency_min"] == 500


def test_disabled_collector_records_nothing():
    metrics = create_metrics_collector({"metrics_enabled": False})

    metrics.record_provider_attempt("groq", True, 10, 5)

    assert list(metrics.get_metrics()) == ["uptime_seconds"]


def test_default_collector_is_enabled():
    assert MetricsCollector().enabled is True
