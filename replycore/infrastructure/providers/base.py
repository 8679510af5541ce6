"""Base provider adapter implementation."""

import json
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from replycore.core.interfaces import IIntegrationSource, IProviderAdapter
from replycore.core.exceptions import CredentialMissing, ProviderError
from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    ProviderDescriptor,
)
from replycore.infrastructure.credentials import ResolvedCredential, resolve_from_integrations
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class BaseProviderAdapter(ABC, IProviderAdapter):
    """Base class for provider adapters.

    Subclasses declare the backend's name, default model and environment
    variable, and implement ``_complete`` to call the backend and decode its
    response. Retries and fallback belong to the routing layer, never here.
    """

    name = "base"
    display_name = "Provider"
    default_model = ""
    default_base_url = ""
    api_key_env: Optional[str] = None
    # Integration record that may hold this provider's key under a
    # ``"provider": <name>`` config entry
    shared_integration: Optional[str] = None
    default_max_tokens = 1000

    def __init__(
        self,
        config: Dict[str, Any],
        integrations: Optional[IIntegrationSource] = None,
    ):
        self.config = config
        self.model_id = config.get("model", self.default_model)
        self.base_url = config.get("base_url", self.default_base_url).rstrip("/")
        self.cost_per_1k_input = float(config.get("cost_per_1k_input", 0.0))
        self.cost_per_1k_output = float(config.get("cost_per_1k_output", 0.0))
        self.default_max_tokens = int(config.get("default_max_tokens", self.default_max_tokens))
        self.integrations = integrations

        env_var = config.get("api_key_env", self.api_key_env)
        preset = config.get("api_key") or (os.getenv(env_var) if env_var else None)
        self._credential: Optional[ResolvedCredential] = (
            ResolvedCredential(api_key=preset) if preset else None
        )
        self._available: Optional[bool] = True if preset else None

    @property
    def api_key(self) -> Optional[str]:
        return self._credential.api_key if self._credential else None

    @property
    def supports_json_mode(self) -> bool:
        """Check if the backend accepts a strict JSON response format."""
        return False

    def descriptor(self) -> ProviderDescriptor:
        """Describe the provider with its current availability."""
        return ProviderDescriptor(
            name=self.name,
            model_id=self.model_id,
            cost_per_1k_input=self.cost_per_1k_input,
            cost_per_1k_output=self.cost_per_1k_output,
            available=bool(self._available),
        )

    async def is_available(self) -> bool:
        """
        Resolve credentials and report availability.

        A pre-set key wins; otherwise integration records are consulted. The
        outcome is cached for the adapter's lifetime. A failing integration
        lookup is not cached so a later call can retry it.
        """
        if self._available is not None:
            return self._available

        try:
            credential = await resolve_from_integrations(
                self.integrations, self.name, self.shared_integration
            )
        except Exception as e:
            logger.warning(f"Integration lookup failed for {self.name}: {e}")
            return False

        if credential is None:
            logger.info(f"{self.display_name} has no credential configured")
            self._available = False
            return False

        self._credential = credential
        if credential.model:
            logger.info(f"{self.display_name} model override from {credential.source}: {credential.model}")
            self.model_id = credential.model
        self._available = True
        return True

    def reset_credentials(self) -> None:
        """Forget cached integration credentials so they are resolved again."""
        if self._credential is not None and self._credential.source == "preset":
            return
        self._credential = None
        self._available = None

    async def complete(
        self,
        messages: Sequence[Message],
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResult:
        """
        Generate a completion.

        Args:
            messages: Ordered request messages
            options: Sampling options, defaults when omitted

        Returns:
            Normalized completion result

        Raises:
            CredentialMissing: If no credential resolves
            ProviderError: On transport failure, non-success status or an
                empty/malformed response
        """
        options = options or CompletionOptions()
        if not messages:
            raise ProviderError("No messages to send", provider=self.name)

        if not await self.is_available() or self._credential is None:
            raise CredentialMissing(
                f"{self.display_name} API key not configured. Set "
                f"{self.api_key_env or 'an API key'} or configure the {self.name} integration.",
                provider=self.name,
            )

        start_time = time.time()
        logger.debug(
            f"Calling {self.display_name}",
            extra={
                "provider": self.name,
                "message_count": len(messages),
                "max_tokens": self._max_tokens(options),
                "strict_json": options.strict_json,
            },
        )

        try:
            result = await self._complete(list(messages), options)
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"{self.display_name} completion failed: {e}")
            raise ProviderError(f"{self.display_name} API error: {e}", provider=self.name) from e

        if not result.text:
            raise ProviderError(f"Empty response from {self.display_name}", provider=self.name)

        logger.info(
            f"{self.display_name} completion succeeded",
            extra={
                "provider": self.name,
                "latency_ms": int((time.time() - start_time) * 1000),
                "tokens_used": result.tokens.total,
                "success": True,
            },
        )
        return result

    @abstractmethod
    async def _complete(
        self, messages: List[Message], options: CompletionOptions
    ) -> CompletionResult:
        """Call the backend and decode its response."""
        pass

    def _max_tokens(self, options: CompletionOptions) -> int:
        return options.max_output_tokens or self.default_max_tokens

    async def shutdown(self) -> None:
        """Cleanup resources."""
        pass


class HttpProviderAdapter(BaseProviderAdapter):
    """Adapter talking to its backend over aiohttp.

    The session is created lazily and carries no timeout: deadlines are the
    caller's to impose around each attempt.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        integrations: Optional[IIntegrationSource] = None,
    ):
        super().__init__(config, integrations)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
        return self.session

    async def _post_json(
        self, path: str, payload: Dict[str, Any], headers: Dict[str, str]
    ) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON body.

        Raises:
            ProviderError: On connection failure, non-2xx status or a body
                that is not a JSON object
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"

        try:
            async with session.post(url, json=payload, headers=headers) as response:
                status = response.status
                body_text = await response.text()
        except aiohttp.ClientError as e:
            logger.error(f"{self.display_name} HTTP client error: {e}")
            raise ProviderError(f"{self.display_name} connection error: {e}", provider=self.name)

        if status < 200 or status >= 300:
            message = extract_error_message(body_text)
            logger.error(f"{self.display_name} API error ({status}): {message}")
            raise ProviderError(
                f"{self.display_name} API error ({status}): {message}",
                provider=self.name,
                status=status,
            )

        try:
            data = json.loads(body_text)
        except ValueError:
            raise ProviderError(f"Malformed JSON response from {self.display_name}", provider=self.name)

        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response shape from {self.display_name}", provider=self.name)
        return data

    async def shutdown(self) -> None:
        """Close the HTTP session."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None


def extract_error_message(body_text: str) -> str:
    """Pull a readable message out of an error response body."""
    try:
        error = json.loads(body_text)
    except ValueError:
        return body_text[:200] or "Unknown error"

    if isinstance(error, dict):
        inner = error.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if isinstance(inner, str):
            return inner
        if error.get("message"):
            return str(error["message"])
    return "Unknown error"


def clamp_confidence(value: float, floor: float, ceiling: float = 100.0) -> float:
    return float(min(ceiling, max(floor, value)))
