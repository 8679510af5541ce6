"""Unit tests for provider routing and fallback."""

import asyncio

import pytest

from replycore.application.routing import RoutingService, calculate_cost, estimate_cost
from replycore.core.exceptions import AllProvidersFailed, NoProvidersAvailable, ProviderError
from replycore.core.models import (
    CompletionOptions,
    ComplexityContext,
    ProviderDescriptor,
    TaskType,
    TokenUsage,
)
from replycore.infrastructure.providers import MockProviderAdapter, ProviderRegistry
from replycore.infrastructure.usage import UsageLogger


class SlowAdapter(MockProviderAdapter):
    async def _complete(self, messages, options):
        await asyncio.sleep(1)
        return await super()._complete(messages, options)


class BrokenSink:
    async def append(self, entry):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_routes_to_preferred_provider(make_routing, usage_sink, user_messages):
    primary = MockProviderAdapter(name="primary", responses=["ok"])
    secondary = MockProviderAdapter(name="secondary", responses=["not used"])
    routing = make_routing(primary, secondary)

    outcome = await routing.route(user_messages)

    assert outcome.result.text == "ok"
    assert outcome.escalated is False
    assert outcome.attempts == ["primary"]
    assert outcome.decision.provider.name == "primary"
    assert outcome.decision.reason == "primary primary: low complexity (score: 0, task: greeting)"
    assert secondary.calls == []
    assert len(usage_sink.entries) == 1
    assert usage_sink.entries[0].success is True


@pytest.mark.asyncio
async def test_falls_back_in_order(make_routing, usage_sink, metrics, user_messages):
    first = MockProviderAdapter(name="first", responses=[ProviderError("rate limited")])
    second = MockProviderAdapter(name="second", responses=["from second"])
    routing = make_routing(first, second)

    outcome = await routing.route(user_messages)

    assert outcome.result.text == "from second"
    assert outcome.escalated is True
    assert outcome.attempts == ["first", "second"]
    assert outcome.decision.reason == "fallback second, primary first failed: rate limited"

    failed, succeeded = usage_sink.entries
    assert failed.provider == "first"
    assert failed.success is False
    assert failed.total_tokens == 0
    assert failed.cost == 0.0
    assert failed.reason == "attempt failed: rate limited"
    assert succeeded.provider == "second"
    assert succeeded.success is True

    snapshot = metrics.get_metrics()
    assert snapshot["provider_failures{provider=first}_total"] == 1
    assert snapshot["escalations{provider=second}_total"] == 1


@pytest.mark.asyncio
async def test_unranked_providers_are_tried_last(make_routing, user_messages):
    extra = MockProviderAdapter(name="extra", responses=["extra"])
    ranked = MockProviderAdapter(name="ranked", responses=[ProviderError("down")])
    routing = make_routing(extra, ranked, preference=["ranked"])

    outcome = await routing.route(user_messages)

    assert outcome.attempts == ["ranked", "extra"]
    assert outcome.result.text == "extra"


@pytest.mark.asyncio
async def test_unavailable_providers_are_skipped(make_routing, user_messages):
    down = MockProviderAdapter(name="down", available=False)
    up = MockProviderAdapter(name="up", responses=["ok"])
    routing = make_routing(down, up)

    outcome = await routing.route(user_messages)

    assert outcome.attempts == ["up"]
    assert outcome.escalated is False
    assert down.calls == []


@pytest.mark.asyncio
async def test_no_providers_available(make_routing, user_messages):
    routing = make_routing(
        MockProviderAdapter(name="a", available=False),
        MockProviderAdapter(name="b", available=False),
    )

    with pytest.raises(NoProvidersAvailable, match="Configured: a, b"):
        await routing.route(user_messages)


@pytest.mark.asyncio
async def test_all_providers_failed(make_routing, usage_sink, user_messages):
    routing = make_routing(
        MockProviderAdapter(name="a", responses=[ProviderError("a down")]),
        MockProviderAdapter(name="b", responses=[ProviderError("b down")]),
    )

    with pytest.raises(AllProvidersFailed) as exc_info:
        await routing.route(user_messages)

    assert str(exc_info.value) == "b down"
    assert exc_info.value.errors == {"a": "a down", "b": "b down"}
    assert [e.success for e in usage_sink.entries] == [False, False]


@pytest.mark.asyncio
async def test_attempt_timeout_moves_on(make_routing, usage_sink, user_messages):
    slow = SlowAdapter(name="slow", responses=["too late"])
    fast = MockProviderAdapter(name="fast", responses=["in time"])
    routing = make_routing(slow, fast)

    outcome = await routing.route(user_messages, attempt_timeout=0.05)

    assert outcome.result.text == "in time"
    assert usage_sink.entries[0].reason == "attempt failed: slow timed out after 0.05s"


@pytest.mark.asyncio
async def test_usage_sink_failure_does_not_fail_request(metrics, user_messages):
    registry = ProviderRegistry([MockProviderAdapter(name="only", responses=["ok"])])
    routing = RoutingService(registry, usage_logger=UsageLogger(BrokenSink()), metrics=metrics)

    outcome = await routing.route(user_messages)

    assert outcome.result.text == "ok"


@pytest.mark.asyncio
async def test_success_entry_records_cost(make_routing, usage_sink, user_messages):
    adapter = MockProviderAdapter(
        {"cost_per_1k_input": 1.0, "cost_per_1k_output": 2.0}, name="priced", responses=["ok"]
    )
    routing = make_routing(adapter)

    outcome = await routing.route(user_messages)

    entry = usage_sink.entries[0]
    # 8 prompt words, 1 completion word
    assert entry.prompt_tokens == 8
    assert entry.completion_tokens == 1
    assert entry.cost == pytest.approx(0.008 + 0.002)
    assert entry.complexity == "low"
    assert entry.task_type == "greeting"
    assert outcome.decision.estimated_cost == pytest.approx(9 / 1000 + 500 / 1000 * 2.0)


@pytest.mark.asyncio
async def test_task_type_hint_from_context(make_routing, user_messages):
    routing = make_routing(MockProviderAdapter(name="only", responses=["ok"]))

    outcome = await routing.route(user_messages, context=ComplexityContext(task_type=TaskType.REMINDER))

    assert outcome.decision.task_type == TaskType.REMINDER


@pytest.mark.asyncio
async def test_options_reach_the_adapter(make_routing, user_messages):
    adapter = MockProviderAdapter(name="only", responses=["ok"])
    routing = make_routing(adapter)
    options = CompletionOptions(temperature=0.2, max_output_tokens=64, strict_json=True)

    await routing.route(user_messages, options)

    assert adapter.calls[0][1] is options


def test_calculate_cost():
    descriptor = ProviderDescriptor(
        name="deepseek", model_id="deepseek-chat", cost_per_1k_input=0.00014, cost_per_1k_output=0.00028
    )

    cost = calculate_cost(descriptor, TokenUsage(prompt=1000, completion=500, total=1500))

    assert cost == pytest.approx(0.00014 + 0.00014)


def test_estimate_cost_uses_max_output_tokens(user_messages):
    descriptor = ProviderDescriptor(name="p", model_id="m", cost_per_1k_input=0.0, cost_per_1k_output=1.0)

    assert estimate_cost(descriptor, user_messages, CompletionOptions(max_output_tokens=100)) == pytest.approx(0.1)
