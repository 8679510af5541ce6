"""Prompt complexity scoring.

Scores a conversation turn on a 0-100 scale from independent keyword and
shape heuristics. The analysis is pure: no I/O, and identical input always
produces an identical result.
"""

import re
from typing import List, Optional, Sequence

from replycore.core.models import (
    ComplexityAnalysis,
    ComplexityContext,
    ComplexityLevel,
    Message,
    Role,
    TaskType,
)

HIGH_THRESHOLD = 50
MEDIUM_THRESHOLD = 25

REASONING_KEYWORDS: List[str] = [
    "analyze", "analysis", "analyzing", "compare", "comparison", "evaluate",
    "evaluation", "explain why", "reasoning", "strategy", "strategic",
    "recommend", "recommendation", "optimize", "optimization", "calculate",
    "determine", "complex", "complicated", "detailed analysis", "comprehensive",
    "assess", "assessment", "detailed evaluation",
]

TECHNICAL_KEYWORDS: List[str] = [
    "legal", "compliance", "regulation", "regulatory", "contract", "agreement",
    "liability", "jurisdiction", "tax", "taxation", "tax implications", "audit",
    "certification", "license", "licensing", "permit", "permission",
    "requirement", "requirements", "compliance requirements",
]

STEP_KEYWORDS: List[str] = ["first", "then", "next", "finally", "step 1", "step 2"]

EMOTIONAL_KEYWORDS: List[str] = [
    "complaint", "dissatisfied", "unhappy", "refund", "cancel",
    "urgent", "emergency", "critical", "important", "asap",
]

SENSITIVE_STAGES = {"CLOSED", "LOST"}

GREETING_PATTERN = re.compile(
    r"^\s*(hi|hello|hey|hiya|salam|salaam|assalamu alaikum|marhaba|"
    r"good (morning|afternoon|evening))\b"
)
REMINDER_KEYWORDS: List[str] = [
    "remind", "reminder", "expire", "expiry", "expiring", "renew", "renewal", "due date",
]
FOLLOWUP_KEYWORDS: List[str] = [
    "follow up", "follow-up", "following up", "any update", "checking in",
    "still waiting", "what happened", "status of",
]
# Greetings longer than this are treated as carrying a real request
MAX_GREETING_LENGTH = 60


class ComplexityAnalyzer:
    """Scores how demanding a turn is to answer well."""

    def analyze(
        self,
        messages: Sequence[Message],
        context: Optional[ComplexityContext] = None,
    ) -> ComplexityAnalysis:
        """
        Analyze prompt complexity.

        Args:
            messages: Ordered messages of the request
            context: Optional caller hints

        Returns:
            Complexity analysis with level, clamped score and factor tags
        """
        factors: List[str] = []
        score = 0

        full_text = " ".join(m.content for m in messages).lower()

        total_length = len(full_text)
        if total_length > 2000:
            score += 20
            factors.append("long_prompt")
        elif total_length > 1000:
            score += 10
            factors.append("medium_prompt")

        question_count = full_text.count("?")
        if question_count >= 4:
            score += 25
            factors.append("multiple_questions")
        elif question_count >= 2:
            score += 15
            factors.append("multiple_questions")

        reasoning_matches = [k for k in REASONING_KEYWORDS if k in full_text]
        if reasoning_matches:
            score += 25 + len(reasoning_matches) * 5
            factors.append("requires_reasoning")

        technical_matches = [k for k in TECHNICAL_KEYWORDS if k in full_text]
        if technical_matches:
            score += 20 + len(technical_matches) * 8
            factors.append("technical_content")

        if any(k in full_text for k in STEP_KEYWORDS):
            score += 15
            factors.append("multi_step")

        if context is not None:
            if context.conversation_length and context.conversation_length > 10:
                score += 10
                factors.append("long_conversation")
            if context.requires_reasoning:
                score += 20
                factors.append("explicit_reasoning")
            if context.lead_stage and context.lead_stage.upper() in SENSITIVE_STAGES:
                score += 5
                factors.append("sensitive_stage")

        if any(k in full_text for k in EMOTIONAL_KEYWORDS):
            score += 15
            factors.append("sensitive_content")

        score = max(0, min(100, score))
        if score >= HIGH_THRESHOLD:
            level = ComplexityLevel.HIGH
        elif score >= MEDIUM_THRESHOLD:
            level = ComplexityLevel.MEDIUM
        else:
            level = ComplexityLevel.LOW

        return ComplexityAnalysis(level=level, score=score, factors=tuple(factors))

    def requires_premium(self, analysis: ComplexityAnalysis) -> bool:
        """Check whether the analysis calls for a premium model.

        The medium branch cannot trigger while HIGH_THRESHOLD <= 50; it is
        kept so that threshold changes do not silently alter premium routing.
        """
        return analysis.level == ComplexityLevel.HIGH or (
            analysis.level == ComplexityLevel.MEDIUM and analysis.score >= 50
        )

    def detect_task_type(
        self,
        messages: Sequence[Message],
        analysis: ComplexityAnalysis,
        hint: Optional[TaskType] = None,
    ) -> TaskType:
        """Derive a coarse task type; an explicit hint always wins."""
        if hint is not None:
            return TaskType(hint)

        latest = _latest_user_text(messages)
        if analysis.level == ComplexityLevel.HIGH:
            return TaskType.COMPLEX
        if any(k in latest for k in REMINDER_KEYWORDS):
            return TaskType.REMINDER
        if any(k in latest for k in FOLLOWUP_KEYWORDS):
            return TaskType.FOLLOWUP
        if len(latest) <= MAX_GREETING_LENGTH and GREETING_PATTERN.search(latest):
            return TaskType.GREETING
        return TaskType.OTHER


def _latest_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if Role(message.role) == Role.USER:
            return message.content.lower()
    return ""


_default_analyzer = ComplexityAnalyzer()


def analyze_complexity(
    messages: Sequence[Message], context: Optional[ComplexityContext] = None
) -> ComplexityAnalysis:
    """Module-level shortcut for ComplexityAnalyzer().analyze()."""
    return _default_analyzer.analyze(messages, context)


def requires_premium(analysis: ComplexityAnalysis) -> bool:
    """Module-level shortcut for ComplexityAnalyzer().requires_premium()."""
    return _default_analyzer.requires_premium(analysis)
