"""Reply generation."""

from .strict import GenerationState, StrictReplyGenerator, with_strict_instruction
from .service import ReplyService, build_messages, DEFAULT_SYSTEM_PROMPT

__all__ = [
    "GenerationState",
    "StrictReplyGenerator",
    "with_strict_instruction",
    "ReplyService",
    "build_messages",
    "DEFAULT_SYSTEM_PROMPT",
]
