"""Unit tests for strict JSON reply generation."""

import pytest

from replycore.application.generation import StrictReplyGenerator, with_strict_instruction
from replycore.application.generation.strict import STRICT_JSON_INSTRUCTION
from replycore.core.exceptions import AllProvidersFailed, ProviderError
from replycore.core.models import CompletionOptions, Message, Role, ServiceType
from replycore.infrastructure.providers import MockProviderAdapter

TRUNCATED = '{"reply": "Which emirate would you prefer for the company?", "service": "busi'


def generator_for(make_routing, parser, metrics, *responses, max_attempts=2):
    adapter = MockProviderAdapter(name="primary", responses=list(responses))
    generator = StrictReplyGenerator(
        make_routing(adapter), parser, max_attempts=max_attempts, metrics=metrics
    )
    return generator, adapter


@pytest.mark.asyncio
async def test_valid_reply_is_accepted(make_routing, parser, metrics, user_messages, valid_reply):
    generator, adapter = generator_for(make_routing, parser, metrics, valid_reply)

    artifact = await generator.generate(user_messages)

    assert artifact.reply == "Could you tell me whether you are currently inside or outside the UAE?"
    assert artifact.structured is not None
    assert artifact.needs_human is False
    assert artifact.service == ServiceType.VISIT_VISA
    assert artifact.confidence == 0.85
    assert artifact.parse_error is None
    assert artifact.provider == "primary"
    assert artifact.attempts == 1
    assert len(adapter.calls) == 1
    assert metrics.get_metrics()["replies{needs_human=false}_total"] == 1


@pytest.mark.asyncio
async def test_default_options_request_strict_json(make_routing, parser, metrics, user_messages, valid_reply):
    generator, adapter = generator_for(make_routing, parser, metrics, valid_reply)

    await generator.generate(user_messages)

    options = adapter.calls[0][1]
    assert options.strict_json is True
    assert options.temperature == 0.3
    assert options.max_output_tokens == 500
    assert options.top_p == 0.9


@pytest.mark.asyncio
async def test_retry_adds_strict_instruction(make_routing, parser, metrics, user_messages, valid_reply):
    generator, adapter = generator_for(make_routing, parser, metrics, "Sure! Here you go.", valid_reply)

    artifact = await generator.generate(user_messages)

    assert artifact.structured is not None
    assert artifact.attempts == 2
    first_messages, second_messages = adapter.calls[0][0], adapter.calls[1][0]
    assert first_messages[-1].content == "Hi, I need a visit visa"
    assert second_messages[-1].content == "Hi, I need a visit visa" + STRICT_JSON_INSTRUCTION
    assert second_messages[0] == first_messages[0]


@pytest.mark.asyncio
async def test_extract_fallback(make_routing, parser, metrics, user_messages):
    generator, adapter = generator_for(make_routing, parser, metrics, TRUNCATED)

    artifact = await generator.generate(user_messages)

    assert len(adapter.calls) == 2
    assert artifact.reply == "Which emirate would you prefer for the company?"
    assert artifact.structured is None
    assert artifact.needs_human is False
    assert artifact.confidence == 0.3
    assert artifact.service == ServiceType.UNKNOWN
    assert artifact.parse_error.startswith("JSON parse error")
    assert artifact.raw_text == TRUNCATED
    assert metrics.get_metrics()["reply_fallbacks{state=extract_fallback}_total"] == 1


@pytest.mark.asyncio
async def test_blocked_extract_falls_back_to_raw(make_routing, parser, metrics, user_messages):
    raw = '{"reply": "Let me check with the team", "service":'
    generator, _ = generator_for(make_routing, parser, metrics, raw)

    artifact = await generator.generate(user_messages)

    assert artifact.reply == raw
    assert artifact.needs_human is True
    assert artifact.confidence == 0.1
    assert metrics.get_metrics()["replies{needs_human=true}_total"] == 1


@pytest.mark.asyncio
async def test_raw_fallback_is_truncated(make_routing, parser, metrics, user_messages):
    generator, _ = generator_for(make_routing, parser, metrics, "x" * 500)

    artifact = await generator.generate(user_messages)

    assert len(artifact.reply) == 300
    assert len(artifact.raw_text) == 500
    assert artifact.needs_human is True


@pytest.mark.asyncio
async def test_single_attempt_skips_retry(make_routing, parser, metrics, user_messages):
    generator, adapter = generator_for(make_routing, parser, metrics, "no json here", max_attempts=1)

    artifact = await generator.generate(user_messages)

    assert len(adapter.calls) == 1
    assert artifact.needs_human is True


@pytest.mark.asyncio
async def test_provider_exhaustion_propagates(make_routing, parser, metrics, user_messages):
    generator, _ = generator_for(make_routing, parser, metrics, ProviderError("down"))

    with pytest.raises(AllProvidersFailed):
        await generator.generate(user_messages)


@pytest.mark.asyncio
async def test_escalation_is_reported(make_routing, parser, metrics, user_messages, valid_reply):
    failing = MockProviderAdapter(name="first", responses=[ProviderError("rate limited")])
    backup = MockProviderAdapter(name="backup", responses=[valid_reply])
    generator = StrictReplyGenerator(make_routing(failing, backup), parser)

    artifact = await generator.generate(user_messages, options=CompletionOptions(strict_json=True))

    assert artifact.provider == "backup"
    assert artifact.escalated is True


def test_from_config(make_routing, parser):
    generator = StrictReplyGenerator.from_config(
        make_routing(MockProviderAdapter()), parser, {"max_generation_attempts": 3, "raw_fallback_chars": 120}
    )

    assert generator.max_attempts == 3
    assert generator.raw_fallback_chars == 120


def test_with_strict_instruction_without_user_message():
    messages = [Message(role=Role.SYSTEM, content="Be brief.")]

    result = with_strict_instruction(messages)

    assert len(messages) == 1
    assert result[-1].role == Role.USER
    assert result[-1].content == STRICT_JSON_INSTRUCTION.strip()


def test_with_strict_instruction_targets_last_user_message():
    messages = [
        Message(role=Role.USER, content="first"),
        Message(role=Role.ASSISTANT, content="reply"),
        Message(role=Role.USER, content="second"),
        Message(role=Role.ASSISTANT, content="trailing"),
    ]

    result = with_strict_instruction(messages)

    assert result[0].content == "first"
    assert result[2].content == "second" + STRICT_JSON_INSTRUCTION
    assert messages[2].content == "second"
