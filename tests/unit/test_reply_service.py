"""Unit tests for the reply service."""

from unittest.mock import AsyncMock

import pytest

from replycore.application.generation import ReplyService, StrictReplyGenerator, build_messages
from replycore.application.retrieval import OUT_OF_SCOPE_RESPONSE, RetrievalGuard
from replycore.core.models import (
    ComplexityContext,
    Direction,
    HistoryMessage,
    ReplyArtifact,
    Role,
    ServiceType,
)
from replycore.infrastructure.providers import MockProviderAdapter


def visit_history():
    return [
        HistoryMessage(
            direction=Direction.INBOUND,
            text="Visit visa requirements: passport copy valid for six months and a passport photo.",
        )
    ]


@pytest.fixture
async def guard(retrieval_store, sample_documents):
    await retrieval_store.index_many(sample_documents)
    return RetrievalGuard(retrieval_store, similarity_threshold=0.7)


@pytest.fixture
def adapter(valid_reply):
    return MockProviderAdapter(name="primary", responses=[valid_reply])


@pytest.fixture
def generator(make_routing, parser, adapter):
    return StrictReplyGenerator(make_routing(adapter), parser)


def test_build_messages_maps_directions(history):
    messages = build_messages(history, "System prompt")

    assert [m.role for m in messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.USER]
    assert messages[0].content == "System prompt"
    assert messages[-1].content == history[-1].text


@pytest.mark.asyncio
async def test_reply_without_guard(generator, adapter, history):
    service = ReplyService(generator)

    artifact = await service.reply(history)

    assert artifact.structured is not None
    sent = adapter.calls[0][0]
    assert sent[0].role == Role.SYSTEM
    assert len(sent) == 1 + len(history)


@pytest.mark.asyncio
async def test_grounding_is_added_to_prompt(generator, adapter, guard):
    service = ReplyService(generator, guard)

    artifact = await service.reply(visit_history())

    assert artifact.needs_human is False
    sent = adapter.calls[0][0]
    assert sent[1].role == Role.SYSTEM
    assert "[1] Visit visa (faq)" in sent[1].content


@pytest.mark.asyncio
async def test_ungrounded_turn_is_handed_off(generator, adapter, guard):
    service = ReplyService(generator, guard, require_grounding=True)
    history = [HistoryMessage(direction=Direction.INBOUND, text="What is the weather on Mars tomorrow")]

    artifact = await service.reply(history)

    assert artifact.needs_human is True
    assert artifact.reply == OUT_OF_SCOPE_RESPONSE
    assert artifact.confidence == 0.0
    assert artifact.service == ServiceType.UNKNOWN
    assert artifact.parse_error.startswith("No relevant training found")
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_ungrounded_turn_still_generates_by_default(generator, adapter, guard):
    service = ReplyService(generator, guard)
    history = [HistoryMessage(direction=Direction.INBOUND, text="What is the weather on Mars tomorrow")]

    artifact = await service.reply(history)

    assert artifact.structured is not None
    assert len(adapter.calls[0][0]) == 2


@pytest.mark.asyncio
async def test_retrieval_can_be_skipped(generator, adapter):
    guard = AsyncMock()
    service = ReplyService(generator, guard)

    await service.reply(visit_history(), use_retrieval=False)

    guard.check.assert_not_called()


@pytest.mark.asyncio
async def test_conversation_length_defaults_to_history(history):
    generator = AsyncMock()
    generator.generate.return_value = ReplyArtifact(
        reply="ok", structured=None, raw_text="ok", needs_human=False,
        service=ServiceType.UNKNOWN, confidence=0.5,
    )
    service = ReplyService(generator)

    await service.reply(history, context=ComplexityContext(lead_stage="qualify"))

    context = generator.generate.call_args.args[3]
    assert context.conversation_length == 3
    assert context.lead_stage == "qualify"
