"""Routing of completion requests across provider adapters."""

import asyncio
import math
import time
from typing import Dict, List, Optional, Sequence

from replycore.application.complexity import ComplexityAnalyzer
from replycore.core.exceptions import AllProvidersFailed, NoProvidersAvailable
from replycore.core.interfaces import IProviderAdapter
from replycore.core.models import (
    CompletionOptions,
    ComplexityAnalysis,
    ComplexityContext,
    Message,
    ProviderDescriptor,
    RoutingDecision,
    RoutingOutcome,
    TaskType,
    TokenUsage,
    UsageLogEntry,
)
from replycore.infrastructure.observability.metrics import MetricsCollector
from replycore.infrastructure.providers.registry import ProviderRegistry
from replycore.infrastructure.usage import UsageLogger
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

# Output tokens assumed when estimating cost without a max_output_tokens
DEFAULT_ESTIMATED_OUTPUT_TOKENS = 500


def calculate_cost(descriptor: ProviderDescriptor, tokens: TokenUsage) -> float:
    """Cost of a completed call from reported token usage."""
    return (
        tokens.prompt / 1000 * descriptor.cost_per_1k_input
        + tokens.completion / 1000 * descriptor.cost_per_1k_output
    )


def estimate_cost(
    descriptor: ProviderDescriptor,
    messages: Sequence[Message],
    options: CompletionOptions,
) -> float:
    """Estimate cost before a call at roughly four characters per token."""
    input_tokens = math.ceil(len(" ".join(m.content for m in messages)) / 4)
    output_tokens = options.max_output_tokens or DEFAULT_ESTIMATED_OUTPUT_TOKENS
    return (
        input_tokens / 1000 * descriptor.cost_per_1k_input
        + output_tokens / 1000 * descriptor.cost_per_1k_output
    )


class RoutingService:
    """Sends a request to the best available provider, falling back in order.

    Providers are attempted strictly one after another and never retried.
    Every attempt is written to the usage log; a logging failure never fails
    the request.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        analyzer: Optional[ComplexityAnalyzer] = None,
        usage_logger: Optional[UsageLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        preference: Optional[Sequence[str]] = None,
    ):
        self.registry = registry
        self.analyzer = analyzer or ComplexityAnalyzer()
        self.usage_logger = usage_logger or UsageLogger()
        self.metrics = metrics
        self.preference: List[str] = list(preference or [])

    def attempt_order(self, available: Sequence[IProviderAdapter]) -> List[IProviderAdapter]:
        """Preferred providers first, then the rest in registry order."""
        by_name = {adapter.name: adapter for adapter in available}
        ordered = [by_name[name] for name in self.preference if name in by_name]
        ordered.extend(a for a in available if a.name not in self.preference)
        return ordered

    async def route(
        self,
        messages: Sequence[Message],
        options: Optional[CompletionOptions] = None,
        context: Optional[ComplexityContext] = None,
        attempt_timeout: Optional[float] = None,
    ) -> RoutingOutcome:
        """
        Complete a request on the first provider that succeeds.

        Args:
            messages: Ordered request messages
            options: Sampling options
            context: Complexity hints; ``task_type`` overrides detection
            attempt_timeout: Seconds allowed per provider attempt

        Returns:
            Completion, routing decision and whether a fallback served it

        Raises:
            NoProvidersAvailable: If no provider has a usable credential
            AllProvidersFailed: If every available provider failed
        """
        options = options or CompletionOptions()

        available = await self.registry.available()
        if not available:
            raise NoProvidersAvailable(
                f"No AI providers available. Configured: {', '.join(self.registry.names()) or 'none'}"
            )

        analysis = self.analyzer.analyze(messages, context)
        task_type = self.analyzer.detect_task_type(
            messages, analysis, context.task_type if context else None
        )
        premium = self.analyzer.requires_premium(analysis)

        order = self.attempt_order(available)
        estimated = estimate_cost(order[0].descriptor(), messages, options)

        errors: Dict[str, str] = {}
        attempts: List[str] = []

        for index, adapter in enumerate(order):
            attempts.append(adapter.name)
            start_time = time.time()
            try:
                if attempt_timeout is not None:
                    result = await asyncio.wait_for(
                        adapter.complete(messages, options), timeout=attempt_timeout
                    )
                else:
                    result = await adapter.complete(messages, options)
            except asyncio.TimeoutError:
                message = f"{adapter.name} timed out after {attempt_timeout}s"
                await self._record_failure(adapter, message, analysis, task_type, start_time, index)
                errors[adapter.name] = message
                continue
            except Exception as e:
                await self._record_failure(adapter, str(e), analysis, task_type, start_time, index)
                errors[adapter.name] = str(e)
                continue

            descriptor = adapter.descriptor()
            escalated = index > 0
            reason = self._reason(adapter.name, order[0].name, errors, analysis, task_type, escalated)
            latency_ms = int((time.time() - start_time) * 1000)

            await self.usage_logger.log(
                UsageLogEntry(
                    provider=adapter.name,
                    model=result.model or descriptor.model_id,
                    prompt_tokens=result.tokens.prompt,
                    completion_tokens=result.tokens.completion,
                    total_tokens=result.tokens.total,
                    cost=calculate_cost(descriptor, result.tokens),
                    success=True,
                    reason=reason,
                    complexity=analysis.level.value,
                    task_type=task_type.value,
                )
            )
            if self.metrics:
                self.metrics.record_provider_attempt(adapter.name, True, latency_ms, result.tokens.total)
                self.metrics.record_routing(adapter.name, escalated)

            logger.info(
                f"Routed request to {adapter.name}",
                extra={
                    "provider": adapter.name,
                    "attempt": index + 1,
                    "latency_ms": latency_ms,
                    "tokens_used": result.tokens.total,
                    "reason": reason,
                },
            )

            decision = RoutingDecision(
                provider=descriptor,
                reason=reason,
                complexity=analysis.level,
                task_type=task_type,
                estimated_cost=estimated,
                requires_premium=premium,
            )
            return RoutingOutcome(result=result, decision=decision, escalated=escalated, attempts=attempts)

        last_error = errors[attempts[-1]]
        logger.error(f"All AI providers failed: {errors}")
        raise AllProvidersFailed(last_error, errors)

    async def _record_failure(
        self,
        adapter: IProviderAdapter,
        error: str,
        analysis: ComplexityAnalysis,
        task_type: TaskType,
        start_time: float,
        index: int,
    ) -> None:
        latency_ms = int((time.time() - start_time) * 1000)
        logger.warning(
            f"Provider {adapter.name} failed: {error}",
            extra={"provider": adapter.name, "attempt": index + 1, "latency_ms": latency_ms, "success": False},
        )
        if self.metrics:
            self.metrics.record_provider_attempt(adapter.name, False, latency_ms)

        descriptor = adapter.descriptor()
        await self.usage_logger.log(
            UsageLogEntry(
                provider=adapter.name,
                model=descriptor.model_id,
                prompt_tokens=0,
                completion_tokens=0,
                total_tokens=0,
                cost=0.0,
                success=False,
                reason=f"attempt failed: {error}",
                complexity=analysis.level.value,
                task_type=task_type.value,
            )
        )

    @staticmethod
    def _reason(
        name: str,
        primary: str,
        errors: Dict[str, str],
        analysis: ComplexityAnalysis,
        task_type: TaskType,
        escalated: bool,
    ) -> str:
        if not escalated:
            return (
                f"primary {name}: {analysis.level.value} complexity "
                f"(score: {analysis.score}, task: {task_type.value})"
            )
        return f"fallback {name}, primary {primary} failed: {errors.get(primary, 'unknown error')}"
