"""Scripted provider adapter for testing and development."""

from typing import Any, Dict, List, Optional, Sequence, Union

from .base import BaseProviderAdapter
from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    TokenUsage,
)

Scripted = Union[str, CompletionResult, Exception]

DEFAULT_MOCK_REPLY = (
    '{"reply": "Thanks for reaching out. Could you share which service you are '
    'interested in?", "service": "unknown", "stage": "qualify", "needsHuman": false}'
)


class MockProviderAdapter(BaseProviderAdapter):
    """Adapter that replays scripted responses.

    Each call consumes the next scripted item: a string becomes the completion
    text, a CompletionResult is returned as is, and an exception is raised.
    The last item repeats once the script is exhausted. Every call is
    recorded in ``calls`` as ``(messages, options)``.
    """

    name = "mock"
    display_name = "Mock"
    default_model = "mock-llm-v1"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        integrations=None,
        responses: Optional[Sequence[Scripted]] = None,
        name: Optional[str] = None,
        available: bool = True,
        confidence: float = 80.0,
    ):
        config = dict(config or {})
        if name:
            self.name = name
            self.display_name = name
        # Mock adapters never need a real key
        if available:
            config.setdefault("api_key", "mock-key")
        super().__init__(config, integrations)
        if not available:
            self._available = False

        self.responses: List[Scripted] = list(responses or config.get("responses") or [DEFAULT_MOCK_REPLY])
        self.default_confidence = confidence
        self.calls: List[tuple] = []
        self.shutdown_called = False

    async def _complete(
        self, messages: List[Message], options: CompletionOptions
    ) -> CompletionResult:
        self.calls.append((list(messages), options))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        item = self.responses[index]

        if isinstance(item, Exception):
            raise item
        if isinstance(item, CompletionResult):
            return item

        prompt_tokens = sum(len(m.content.split()) for m in messages)
        completion_tokens = len(item.split())
        return CompletionResult(
            text=item,
            confidence=self.default_confidence,
            tokens=TokenUsage(
                prompt=prompt_tokens,
                completion=completion_tokens,
                total=prompt_tokens + completion_tokens,
            ),
            model=self.model_id,
        )

    async def shutdown(self) -> None:
        self.shutdown_called = True
