"""Strict JSON reply generation with parse retry and fallbacks."""

import re
from enum import Enum
from typing import Dict, List, Optional, Sequence

from replycore.application.contract import OutputContractParser
from replycore.application.routing import RoutingService
from replycore.core.models import (
    CompletionOptions,
    ComplexityContext,
    HistoryMessage,
    Message,
    ParseOutcome,
    ReplyArtifact,
    Role,
    RoutingOutcome,
    ServiceType,
)
from replycore.infrastructure.observability.metrics import MetricsCollector
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

STRICT_JSON_INSTRUCTION = (
    "\n\nCRITICAL: You MUST return ONLY valid JSON. No explanations, no markdown, "
    "no other text. Just the JSON object."
)

REPLY_FIELD_RE = re.compile(r'"reply"\s*:\s*"([^"]+)"', re.IGNORECASE)

EXTRACT_FALLBACK_CONFIDENCE = 0.3
RAW_FALLBACK_CONFIDENCE = 0.1


class GenerationState(str, Enum):
    GENERATE = "generate"
    PARSE = "parse"
    ACCEPT = "accept"
    RETRY_STRICTER = "retry_stricter"
    EXTRACT_FALLBACK = "extract_fallback"
    RAW_FALLBACK = "raw_fallback"


def with_strict_instruction(messages: Sequence[Message]) -> List[Message]:
    """Copy of the messages with the strict JSON instruction on the last user message."""
    result = list(messages)
    for i in range(len(result) - 1, -1, -1):
        if Role(result[i].role) == Role.USER:
            result[i] = Message(role=Role.USER, content=result[i].content + STRICT_JSON_INSTRUCTION)
            return result
    result.append(Message(role=Role.USER, content=STRICT_JSON_INSTRUCTION.strip()))
    return result


class StrictReplyGenerator:
    """Generates one structured reply per turn.

    States run GENERATE, PARSE, then ACCEPT on a valid reply. A rejected
    reply moves to RETRY_STRICTER until ``max_attempts`` generations have
    been made, then to EXTRACT_FALLBACK and finally RAW_FALLBACK. Provider
    exhaustion propagates to the caller.

    Every artifact returned carries either a sanitizer-approved reply or
    ``needs_human=True``.
    """

    def __init__(
        self,
        routing: RoutingService,
        parser: Optional[OutputContractParser] = None,
        max_attempts: int = 2,
        raw_fallback_chars: int = 300,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.routing = routing
        self.parser = parser or OutputContractParser()
        self.max_attempts = max(1, max_attempts)
        self.raw_fallback_chars = raw_fallback_chars
        self.metrics = metrics

    @classmethod
    def from_config(
        cls,
        routing: RoutingService,
        parser: OutputContractParser,
        config: Dict,
        metrics: Optional[MetricsCollector] = None,
    ) -> "StrictReplyGenerator":
        return cls(
            routing,
            parser,
            max_attempts=int(config.get("max_generation_attempts", 2)),
            raw_fallback_chars=int(config.get("raw_fallback_chars", 300)),
            metrics=metrics,
        )

    async def generate(
        self,
        messages: Sequence[Message],
        history: Sequence[HistoryMessage] = (),
        options: Optional[CompletionOptions] = None,
        context: Optional[ComplexityContext] = None,
        attempt_timeout: Optional[float] = None,
    ) -> ReplyArtifact:
        """
        Generate a reply artifact.

        Args:
            messages: Prompt messages sent to the provider
            history: Conversation history the sanitizer checks against
            options: Sampling options; strict JSON output is requested by default
            context: Complexity hints passed to routing
            attempt_timeout: Per-provider deadline in seconds

        Returns:
            ReplyArtifact

        Raises:
            NoProvidersAvailable: If no provider can be used
            AllProvidersFailed: If every provider failed on a generation
        """
        options = options or CompletionOptions(
            temperature=0.3, max_output_tokens=500, top_p=0.9, strict_json=True
        )
        state = GenerationState.GENERATE
        current_messages = list(messages)
        attempts = 0
        routed: Optional[RoutingOutcome] = None
        parsed: Optional[ParseOutcome] = None
        raw_text = ""

        while True:
            if state == GenerationState.GENERATE:
                attempts += 1
                logger.info(f"Generating strict reply (attempt {attempts}/{self.max_attempts})")
                routed = await self.routing.route(current_messages, options, context, attempt_timeout)
                raw_text = routed.result.text
                state = GenerationState.PARSE

            elif state == GenerationState.PARSE:
                parsed = self.parser.parse(raw_text, history)
                if parsed.structured is not None:
                    state = GenerationState.ACCEPT
                elif attempts < self.max_attempts:
                    logger.warning(f"Parse failed: {parsed.parse_error}, retrying with stricter instruction")
                    state = GenerationState.RETRY_STRICTER
                else:
                    logger.error(f"Parse failed after {attempts} attempts: {parsed.parse_error}")
                    state = GenerationState.EXTRACT_FALLBACK

            elif state == GenerationState.RETRY_STRICTER:
                current_messages = with_strict_instruction(messages)
                state = GenerationState.GENERATE

            elif state == GenerationState.ACCEPT:
                structured = parsed.structured
                self._record(structured.needs_human, None)
                return ReplyArtifact(
                    reply=structured.reply,
                    structured=structured,
                    raw_text=raw_text,
                    needs_human=structured.needs_human,
                    service=structured.service,
                    confidence=structured.confidence,
                    provider=routed.decision.provider.name,
                    escalated=routed.escalated,
                    attempts=attempts,
                )

            elif state == GenerationState.EXTRACT_FALLBACK:
                match = REPLY_FIELD_RE.search(raw_text)
                if match:
                    check = self.parser.sanitizer.check(match.group(1), history)
                    if not check.blocked:
                        logger.info("Using reply text extracted from malformed output")
                        self._record(False, state.value)
                        return self._fallback(
                            check.sanitized, raw_text, parsed, routed, attempts,
                            needs_human=False, confidence=EXTRACT_FALLBACK_CONFIDENCE,
                        )
                    logger.warning(f"Extracted reply rejected: {check.reason}")
                state = GenerationState.RAW_FALLBACK

            elif state == GenerationState.RAW_FALLBACK:
                logger.warning("Falling back to raw output; handing off to a human")
                self._record(True, state.value)
                return self._fallback(
                    raw_text[: self.raw_fallback_chars], raw_text, parsed, routed, attempts,
                    needs_human=True, confidence=RAW_FALLBACK_CONFIDENCE,
                )

    def _fallback(
        self,
        reply: str,
        raw_text: str,
        parsed: ParseOutcome,
        routed: RoutingOutcome,
        attempts: int,
        needs_human: bool,
        confidence: float,
    ) -> ReplyArtifact:
        return ReplyArtifact(
            reply=reply,
            structured=None,
            raw_text=raw_text,
            needs_human=needs_human,
            service=ServiceType.UNKNOWN,
            confidence=confidence,
            parse_error=parsed.parse_error,
            provider=routed.decision.provider.name,
            escalated=routed.escalated,
            attempts=attempts,
        )

    def _record(self, needs_human: bool, fallback: Optional[str]) -> None:
        if self.metrics:
            self.metrics.record_reply(needs_human, fallback)
