"""Complexity scoring."""

from .analyzer import ComplexityAnalyzer, analyze_complexity, requires_premium

__all__ = ["ComplexityAnalyzer", "analyze_complexity", "requires_premium"]
