"""Retrieval gating and grounding."""

from .guard import (
    OUT_OF_SCOPE_RESPONSE,
    TECHNICAL_ISSUE_RESPONSE,
    GuardResult,
    RelevantDocument,
    RetrievalGuard,
    grounding_message,
)

__all__ = [
    "OUT_OF_SCOPE_RESPONSE",
    "TECHNICAL_ISSUE_RESPONSE",
    "GuardResult",
    "RelevantDocument",
    "RetrievalGuard",
    "grounding_message",
]
