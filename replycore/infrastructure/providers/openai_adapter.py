"""OpenAI chat backend using the official SDK."""

from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .base import BaseProviderAdapter, clamp_confidence
from replycore.core.exceptions import ProviderError
from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    TokenUsage,
)
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIAdapter(BaseProviderAdapter):
    """Premium GPT-4 class backend for complex turns."""

    name = "openai"
    display_name = "OpenAI"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"
    api_key_env = "OPENAI_API_KEY"

    def __init__(self, config: Dict[str, Any], integrations=None):
        super().__init__(config, integrations)
        self.organization = config.get("organization")
        self.client: Optional[AsyncOpenAI] = None

    @property
    def supports_json_mode(self) -> bool:
        return True

    def _get_client(self) -> AsyncOpenAI:
        # Recreated when the resolved key changes after a credential reset
        if self.client is None or self.client.api_key != self.api_key:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                organization=self.organization,
                base_url=self.base_url or None,
                max_retries=0,
            )
        return self.client

    async def _complete(
        self, messages: List[Message], options: CompletionOptions
    ) -> CompletionResult:
        request_params = {
            "model": self.model_id,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": self._max_tokens(options),
            "temperature": options.temperature,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        if options.strict_json:
            request_params["response_format"] = {"type": "json_object"}

        try:
            response = await self._get_client().chat.completions.create(**request_params)
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error ({e.status_code}): {e.message}")
            raise ProviderError(
                f"OpenAI API error ({e.status_code}): {e.message}",
                provider=self.name,
                status=e.status_code,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI connection error: {e}")
            raise ProviderError(f"OpenAI connection error: {e}", provider=self.name)

        if not response.choices:
            raise ProviderError(
                "Invalid response from OpenAI: missing or empty choices array",
                provider=self.name,
            )

        choice = response.choices[0]
        text = (choice.message.content or "").strip()
        if not text:
            raise ProviderError("Empty response from OpenAI", provider=self.name)

        usage = response.usage
        return CompletionResult(
            text=text,
            confidence=clamp_confidence(85 + (10 if len(text) > 100 else 0), floor=70),
            tokens=TokenUsage(
                prompt=usage.prompt_tokens if usage else 0,
                completion=usage.completion_tokens if usage else 0,
                total=usage.total_tokens if usage else 0,
            ),
            model=response.model or self.model_id,
            finish_reason=choice.finish_reason or "stop",
        )

    async def shutdown(self) -> None:
        """Close the SDK client."""
        if self.client:
            await self.client.close()
            self.client = None
