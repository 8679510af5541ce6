"""Unit tests for complexity analysis."""

import pytest

from replycore.application.complexity import ComplexityAnalyzer, analyze_complexity, requires_premium
from replycore.core.models import (
    ComplexityAnalysis,
    ComplexityContext,
    ComplexityLevel,
    Message,
    Role,
    TaskType,
)


def user(text: str):
    return [Message(role=Role.USER, content=text)]


@pytest.fixture
def analyzer():
    return ComplexityAnalyzer()


def test_simple_greeting_is_low(analyzer):
    analysis = analyzer.analyze(user("Hello, how are you?"))

    assert analysis.level == ComplexityLevel.LOW
    assert analysis.score < 25
    assert analysis.factors == ()


def test_reasoning_request_is_high(analyzer):
    analysis = analyzer.analyze(user(
        "Please analyze and compare the options and provide a detailed evaluation with recommendations."
    ))

    assert analysis.level == ComplexityLevel.HIGH
    assert analysis.score >= 50
    assert "requires_reasoning" in analysis.factors


def test_four_questions_score_medium(analyzer):
    analysis = analyzer.analyze(user(
        "What is the price? How long does it take? Do I need a sponsor? Can I work?"
    ))

    assert analysis.score == 25
    assert analysis.level == ComplexityLevel.MEDIUM
    assert analysis.factors == ("multiple_questions",)


def test_two_questions_and_urgency(analyzer):
    analysis = analyzer.analyze(user("Is it urgent? Can you help?"))

    assert analysis.score == 30
    assert analysis.factors == ("multiple_questions", "sensitive_content")


def test_technical_keywords_scale_with_matches(analyzer):
    analysis = analyzer.analyze(user("What are the tax and legal requirements?"))

    # legal, tax, requirement, requirements
    assert analysis.score == 20 + 4 * 8
    assert "technical_content" in analysis.factors
    assert analysis.level == ComplexityLevel.HIGH


def test_multi_step_markers(analyzer):
    analysis = analyzer.analyze(user("First send the passport, then the photo"))

    assert "multi_step" in analysis.factors
    assert analysis.score == 15


def test_long_prompt(analyzer):
    analysis = analyzer.analyze(user("a " * 1100))

    assert analysis.factors == ("long_prompt",)
    assert analysis.score == 20


def test_context_hints(analyzer):
    context = ComplexityContext(lead_stage="closed", conversation_length=12, requires_reasoning=True)
    analysis = analyzer.analyze(user("ok"), context)

    assert analysis.score == 35
    assert analysis.factors == ("long_conversation", "explicit_reasoning", "sensitive_stage")
    assert analysis.level == ComplexityLevel.MEDIUM


def test_score_is_clamped(analyzer):
    text = (
        "Urgent complaint! First analyze, compare and evaluate the legal, tax, compliance, "
        "regulation, contract and licensing requirements, then recommend a strategy? "
        "Why? How? When? Where?"
    )
    analysis = analyzer.analyze(user(text), ComplexityContext(requires_reasoning=True))

    assert analysis.score == 100
    assert analysis.level == ComplexityLevel.HIGH


def test_analysis_is_deterministic():
    messages = user("Can you compare the golden visa and investor visa requirements?")

    assert analyze_complexity(messages) == analyze_complexity(messages)


def test_requires_premium():
    assert requires_premium(ComplexityAnalysis(level=ComplexityLevel.HIGH, score=50))
    assert requires_premium(ComplexityAnalysis(level=ComplexityLevel.MEDIUM, score=60))
    assert not requires_premium(ComplexityAnalysis(level=ComplexityLevel.MEDIUM, score=30))
    assert not requires_premium(ComplexityAnalysis(level=ComplexityLevel.LOW, score=10))


@pytest.mark.parametrize("text,expected", [
    ("Hi there", TaskType.GREETING),
    ("Please remind me before my visa will expire", TaskType.REMINDER),
    ("Any update on my application", TaskType.FOLLOWUP),
    ("Tell me about your services", TaskType.OTHER),
])
def test_detect_task_type(analyzer, text, expected):
    messages = user(text)
    analysis = analyzer.analyze(messages)

    assert analyzer.detect_task_type(messages, analysis) == expected


def test_high_complexity_is_complex_task(analyzer):
    messages = user("Please analyze and compare the tax implications in detail")
    analysis = analyzer.analyze(messages)

    assert analyzer.detect_task_type(messages, analysis) == TaskType.COMPLEX


def test_explicit_task_type_hint_wins(analyzer):
    messages = user("Please analyze and compare the tax implications in detail")
    analysis = analyzer.analyze(messages)

    assert analyzer.detect_task_type(messages, analysis, TaskType.GREETING) == TaskType.GREETING
