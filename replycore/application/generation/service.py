"""End-to-end reply generation for one conversational turn."""

from dataclasses import replace
from typing import List, Optional, Sequence

from .strict import StrictReplyGenerator
from replycore.application.retrieval import GuardResult, RetrievalGuard, grounding_message
from replycore.core.models import (
    CompletionOptions,
    ComplexityContext,
    Direction,
    HistoryMessage,
    Message,
    ReplyArtifact,
    Role,
    ServiceType,
)
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = """You write replies to customers of a business services company.

OUTPUT FORMAT (MANDATORY JSON):
{"reply": "Customer-facing message only", "service": "visit_visa|freelance_visa|freelance_permit_visa|investor_visa|pro_work|business_setup|family_visa|golden_visa|unknown", "stage": "qualify|quote|handover", "needsHuman": false, "missing": [], "confidence": 0.0}

RULES:
1. Return ONLY valid JSON, with no text before or after it.
2. The "reply" field is the ONLY text sent to the customer: no reasoning, no planning, no signatures.
3. Never promise outcomes, offer discounts or invent dates.
4. Do not repeat a previous message; respond to what the customer just said.
5. Keep the reply under 300 characters and professional."""


def build_messages(
    history: Sequence[HistoryMessage],
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    grounding: Optional[Message] = None,
) -> List[Message]:
    """Prompt messages: system prompt, optional grounding, then the history."""
    messages = [Message(role=Role.SYSTEM, content=system_prompt)]
    if grounding is not None:
        messages.append(grounding)
    for item in history:
        role = Role.USER if item.direction == Direction.INBOUND else Role.ASSISTANT
        messages.append(Message(role=role, content=item.text))
    return messages


def latest_inbound(history: Sequence[HistoryMessage]) -> str:
    for item in reversed(history):
        if item.direction == Direction.INBOUND:
            return item.text
    return ""


class ReplyService:
    """Grounds a turn through the retrieval guard, then generates the reply.

    With ``require_grounding`` set, a turn the guard refuses is handed to a
    human with the guard's suggested response instead of being generated.
    """

    def __init__(
        self,
        generator: StrictReplyGenerator,
        guard: Optional[RetrievalGuard] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        require_grounding: bool = False,
    ):
        self.generator = generator
        self.guard = guard
        self.system_prompt = system_prompt
        self.require_grounding = require_grounding

    async def reply(
        self,
        history: Sequence[HistoryMessage],
        context: Optional[ComplexityContext] = None,
        options: Optional[CompletionOptions] = None,
        attempt_timeout: Optional[float] = None,
        use_retrieval: bool = True,
    ) -> ReplyArtifact:
        context = context or ComplexityContext()
        if context.conversation_length is None:
            context = replace(context, conversation_length=len(history))

        grounding = None
        if self.guard is not None and use_retrieval:
            query = latest_inbound(history)
            guard_result = await self.guard.check(query)
            if not guard_result.can_respond and self.require_grounding:
                return self._handoff(guard_result)
            grounding = grounding_message(guard_result)

        messages = build_messages(history, self.system_prompt, grounding)
        return await self.generator.generate(messages, history, options, context, attempt_timeout)

    @staticmethod
    def _handoff(result: GuardResult) -> ReplyArtifact:
        logger.info(f"Handing off ungrounded turn: {result.reason}")
        return ReplyArtifact(
            reply=result.suggested_response or "",
            structured=None,
            raw_text="",
            needs_human=True,
            service=ServiceType.UNKNOWN,
            confidence=0.0,
            parse_error=result.reason,
        )
