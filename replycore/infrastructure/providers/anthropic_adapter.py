"""Anthropic Messages API backend."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import HttpProviderAdapter, clamp_confidence
from replycore.core.exceptions import ProviderError
from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    Role,
    TokenUsage,
)


@dataclass
class MessagesBody:
    """Decoded ``/messages`` response body."""

    text: str
    usage: TokenUsage
    model: Optional[str]
    stop_reason: Optional[str]

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MessagesBody":
        content = data.get("content")
        if not isinstance(content, list) or not content:
            raise ProviderError("Invalid response from Anthropic: missing or empty content array")

        # Text blocks are concatenated; tool and other block types are ignored
        text = "".join(
            block.get("text") or ""
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        usage = data.get("usage") or {}
        prompt = int(usage.get("input_tokens") or 0)
        completion = int(usage.get("output_tokens") or 0)

        return cls(
            text=text.strip(),
            usage=TokenUsage(prompt=prompt, completion=completion, total=prompt + completion),
            model=data.get("model"),
            stop_reason=data.get("stop_reason"),
        )


class AnthropicAdapter(HttpProviderAdapter):
    """Claude backend; a fallback when the OpenAI-format backends fail."""

    name = "anthropic"
    display_name = "Anthropic"
    default_model = "claude-3-5-sonnet-20241022"
    default_base_url = "https://api.anthropic.com/v1"
    api_key_env = "ANTHROPIC_API_KEY"

    def __init__(self, config: Dict[str, Any], integrations=None):
        super().__init__(config, integrations)
        self.api_version = str(config.get("api_version", "2023-06-01"))

    def build_payload(self, messages: List[Message], options: CompletionOptions) -> Dict[str, Any]:
        """Build the request body, lifting system messages to ``system``."""
        system_parts = [m.content for m in messages if m.role == Role.SYSTEM]
        payload: Dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": self._max_tokens(options),
            "temperature": options.temperature,
            "messages": [
                m.to_dict()
                for m in messages
                if m.role != Role.SYSTEM
            ],
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        return payload

    async def _complete(
        self, messages: List[Message], options: CompletionOptions
    ) -> CompletionResult:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }
        data = await self._post_json("/messages", self.build_payload(messages, options), headers)

        try:
            body = MessagesBody.from_json(data)
        except ProviderError as e:
            raise ProviderError(str(e), provider=self.name)

        if not body.text:
            raise ProviderError("Empty response from Anthropic", provider=self.name)

        return CompletionResult(
            text=body.text,
            confidence=clamp_confidence(80 + (10 if len(body.text) > 100 else 0), floor=70),
            tokens=body.usage,
            model=body.model or self.model_id,
            finish_reason=body.stop_reason or "stop",
        )
