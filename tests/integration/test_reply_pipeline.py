"""Integration tests for the full reply pipeline."""

import pytest

from replycore.api.dependencies import build_services
from replycore.core.exceptions import ProviderError
from replycore.core.models import Direction, HistoryMessage, Role
from replycore.infrastructure.embeddings import MockEmbedding
from replycore.infrastructure.providers import MockProviderAdapter, ProviderRegistry

VISIT_TEXT = "Visit visa requirements: passport copy valid for six months and a passport photo."


@pytest.fixture
def adapters(valid_reply):
    return [
        MockProviderAdapter(name="primary", responses=[valid_reply]),
        MockProviderAdapter(name="secondary", responses=[valid_reply]),
    ]


@pytest.fixture
def services(mock_config, adapters):
    return build_services(mock_config, registry=ProviderRegistry(adapters), embedding_model=MockEmbedding(128))


@pytest.mark.asyncio
async def test_grounded_reply(services, adapters, sample_documents):
    await services.store.index_many(sample_documents)
    history = [HistoryMessage(direction=Direction.INBOUND, text=VISIT_TEXT)]

    artifact = await services.reply_service.reply(history)

    assert artifact.needs_human is False
    assert artifact.provider == "primary"
    prompt = adapters[0].calls[0][0]
    assert prompt[0].role == Role.SYSTEM
    assert "Visit visa (faq)" in prompt[1].content
    assert prompt[-1].content == VISIT_TEXT

    entries = services.usage_logger.sink.entries
    assert len(entries) == 1
    assert entries[0].provider == "primary"
    assert entries[0].success is True


@pytest.mark.asyncio
async def test_require_grounding_hands_off(mock_config, adapters):
    mock_config["retrieval"]["require_grounding"] = True
    services = build_services(mock_config, registry=ProviderRegistry(adapters), embedding_model=MockEmbedding(128))
    history = [HistoryMessage(direction=Direction.INBOUND, text="Can you book me a flight to Paris")]

    artifact = await services.reply_service.reply(history)

    assert artifact.needs_human is True
    assert artifact.provider is None
    assert adapters[0].calls == []
    assert services.usage_logger.sink.entries == []


@pytest.mark.asyncio
async def test_unsafe_replies_fall_back_to_handoff(mock_config):
    unsafe = '{"reply": "I think we can guarantee approval.", "service": "visit_visa"}'
    adapter = MockProviderAdapter(name="primary", responses=[unsafe])
    services = build_services(mock_config, registry=ProviderRegistry([adapter]), embedding_model=MockEmbedding(128))
    history = [HistoryMessage(direction=Direction.INBOUND, text="Will my visa be approved?")]

    artifact = await services.reply_service.reply(history, use_retrieval=False)

    assert len(adapter.calls) == 2
    assert artifact.structured is None
    assert artifact.needs_human is True
    assert artifact.parse_error.startswith("Blocked:")
    assert services.metrics.get_metrics()["reply_fallbacks{state=raw_fallback}_total"] == 1


@pytest.mark.asyncio
async def test_fallback_provider_serves_after_failure(mock_config, valid_reply):
    failing = MockProviderAdapter(name="primary", responses=[ProviderError("503 upstream")])
    backup = MockProviderAdapter(name="secondary", responses=[valid_reply])
    services = build_services(
        mock_config, registry=ProviderRegistry([failing, backup]), embedding_model=MockEmbedding(128)
    )
    history = [HistoryMessage(direction=Direction.INBOUND, text="Hi, I need a visit visa")]

    artifact = await services.reply_service.reply(history, use_retrieval=False)

    assert artifact.provider == "secondary"
    assert artifact.escalated is True
    reasons = [e.reason for e in services.usage_logger.sink.entries]
    assert reasons[0] == "attempt failed: 503 upstream"
    assert reasons[1] == "fallback secondary, primary primary failed: 503 upstream"


@pytest.mark.asyncio
async def test_shutdown_closes_providers(services, adapters):
    await services.shutdown()

    assert all(a.shutdown_called for a in adapters)
