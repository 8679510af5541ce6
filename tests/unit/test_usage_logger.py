"""Unit tests for usage logging."""

import json

import pytest

from replycore.core.models import UsageLogEntry
from replycore.infrastructure.usage import JsonlUsageSink, MemoryUsageSink, UsageLogger, create_usage_logger


def entry(**overrides):
    fields = dict(
        provider="deepseek",
        model="deepseek-chat",
        prompt_tokens=120,
        completion_tokens=40,
        total_tokens=160,
        cost=0.0000280,
        success=True,
        reason="primary deepseek: low complexity (score: 0, task: greeting)",
        complexity="low",
        task_type="greeting",
    )
    fields.update(overrides)
    return UsageLogEntry(**fields)


class FailingSink:
    async def append(self, entry):
        raise OSError("read-only file system")


@pytest.mark.asyncio
async def test_memory_sink_keeps_order(usage_logger, usage_sink):
    await usage_logger.log(entry(provider="groq", success=False, reason="attempt failed: timeout"))
    await usage_logger.log(entry())

    assert [e.provider for e in usage_sink.entries] == ["groq", "deepseek"]


@pytest.mark.asyncio
async def test_jsonl_sink_appends_lines(tmp_path):
    path = tmp_path / "nested" / "usage.jsonl"
    logger = UsageLogger(JsonlUsageSink(str(path)))

    await logger.log(entry())
    await logger.log(entry(success=False, total_tokens=0))

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["provider"] == "deepseek"
    assert first["total_tokens"] == 160
    assert first["success"] is True
    assert "timestamp" in first
    assert json.loads(lines[1])["success"] is False


@pytest.mark.asyncio
async def test_sink_failure_is_swallowed():
    logger = UsageLogger(FailingSink())

    await logger.log(entry())


def test_create_usage_logger(tmp_path):
    jsonl = create_usage_logger({"sink": "jsonl", "path": str(tmp_path / "u.jsonl")})
    memory = create_usage_logger({"sink": "memory"})
    unknown = create_usage_logger({"sink": "postgres"})

    assert isinstance(jsonl.sink, JsonlUsageSink)
    assert isinstance(memory.sink, MemoryUsageSink)
    assert isinstance(unknown.sink, MemoryUsageSink)
