"""Adapters for backends exposing the OpenAI chat-completions wire format."""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import HttpProviderAdapter
from replycore.core.exceptions import ProviderError
from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    TokenUsage,
)


@dataclass
class ChatCompletionBody:
    """Decoded ``/chat/completions`` response body."""

    text: str
    usage: TokenUsage
    model: Optional[str]
    finish_reason: Optional[str]

    @classmethod
    def from_json(cls, data: Dict[str, Any], display_name: str) -> "ChatCompletionBody":
        """
        Decode the response body.

        Text lives at ``choices[0].message.content``; token counts at
        ``usage.prompt_tokens``/``completion_tokens``/``total_tokens``.

        Raises:
            ProviderError: If the choices array is missing or empty
        """
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError(
                f"Invalid response from {display_name}: missing or empty choices array"
            )

        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        usage = data.get("usage") or {}

        return cls(
            text=(content or "").strip(),
            usage=TokenUsage(
                prompt=int(usage.get("prompt_tokens") or 0),
                completion=int(usage.get("completion_tokens") or 0),
                total=int(usage.get("total_tokens") or 0),
            ),
            model=data.get("model"),
            finish_reason=first.get("finish_reason"),
        )


class OpenAICompatibleAdapter(HttpProviderAdapter):
    """Bearer-authenticated chat-completions backend."""

    shared_integration = "openai"

    @property
    def supports_json_mode(self) -> bool:
        return True

    def build_payload(self, messages: List[Message], options: CompletionOptions) -> Dict[str, Any]:
        """Build the request body."""
        payload = {
            "model": self.model_id,
            "messages": [m.to_dict() for m in messages],
            "temperature": options.temperature,
            "max_tokens": self._max_tokens(options),
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        if options.strict_json and self.supports_json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _complete(
        self, messages: List[Message], options: CompletionOptions
    ) -> CompletionResult:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        data = await self._post_json("/chat/completions", self.build_payload(messages, options), headers)
        return self.decode(data)

    def decode(self, data: Dict[str, Any]) -> CompletionResult:
        """Decode a response body into a CompletionResult."""
        body = ChatCompletionBody.from_json(data, self.display_name)
        if not body.text:
            raise ProviderError(f"Empty response from {self.display_name}", provider=self.name)

        return CompletionResult(
            text=body.text,
            confidence=self.confidence(body.text),
            tokens=body.usage,
            model=body.model or self.model_id,
            finish_reason=body.finish_reason or "stop",
        )

    @abstractmethod
    def confidence(self, text: str) -> float:
        """Synthesize a confidence score; these backends report none."""
        pass
