"""FastAPI dependencies for dependency injection."""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from functools import lru_cache

from replycore.application.complexity import ComplexityAnalyzer
from replycore.application.contract import OutputContractParser, Sanitizer
from replycore.application.generation import ReplyService, StrictReplyGenerator
from replycore.application.retrieval import RetrievalGuard
from replycore.application.routing import RoutingService
from replycore.core.interfaces import IEmbeddingModel, IIntegrationSource
from replycore.infrastructure.embeddings import create_embedding_model
from replycore.infrastructure.observability.metrics import MetricsCollector, create_metrics_collector
from replycore.infrastructure.providers import ProviderRegistry, create_provider_registry
from replycore.infrastructure.usage import UsageLogger, create_usage_logger
from replycore.infrastructure.vector_store import BaseRetrievalStore, create_retrieval_store
from replycore.utils.config import load_config
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived service of the API process, wired once."""

    config: Dict[str, Any]
    registry: ProviderRegistry
    usage_logger: UsageLogger
    metrics: MetricsCollector
    analyzer: ComplexityAnalyzer
    routing: RoutingService
    parser: OutputContractParser
    generator: StrictReplyGenerator
    store: BaseRetrievalStore
    guard: RetrievalGuard
    reply_service: ReplyService

    async def shutdown(self) -> None:
        await self.registry.shutdown()
        close = getattr(self.store.embedding_model, "shutdown", None)
        if close is not None:
            await close()


def build_services(
    config: Dict[str, Any],
    registry: Optional[ProviderRegistry] = None,
    embedding_model: Optional[IEmbeddingModel] = None,
    integrations: Optional[IIntegrationSource] = None,
) -> ServiceContainer:
    """
    Wire the services from configuration.

    Args:
        config: Full configuration dictionary
        registry: Pre-built provider registry, built from config when omitted
        embedding_model: Embedding model, built from config when omitted
        integrations: Integration records for provider credentials

    Returns:
        ServiceContainer
    """
    routing_config = config.get("routing", {})
    retrieval_config = config.get("retrieval", {})
    contract_config = config.get("contract", {})

    registry = registry or create_provider_registry(config, integrations)
    usage_logger = create_usage_logger(config.get("usage", {}))
    metrics = create_metrics_collector(config.get("observability", {}))
    analyzer = ComplexityAnalyzer()

    routing = RoutingService(
        registry,
        analyzer=analyzer,
        usage_logger=usage_logger,
        metrics=metrics,
        preference=routing_config.get("preference"),
    )
    parser = OutputContractParser(Sanitizer.from_config(contract_config))
    generator = StrictReplyGenerator.from_config(routing, parser, contract_config, metrics)

    embedding_model = embedding_model or create_embedding_model(retrieval_config)
    store = create_retrieval_store(retrieval_config, embedding_model)
    guard = RetrievalGuard(
        store,
        similarity_threshold=float(retrieval_config.get("similarity_threshold", 0.7)),
        top_k=int(retrieval_config.get("top_k", 5)),
        subject_tags=retrieval_config.get("subject_tags"),
    )
    reply_service = ReplyService(
        generator,
        guard=guard,
        require_grounding=bool(retrieval_config.get("require_grounding", False)),
    )

    logger.info(f"Services initialized with providers: {registry.names()}")
    return ServiceContainer(
        config=config,
        registry=registry,
        usage_logger=usage_logger,
        metrics=metrics,
        analyzer=analyzer,
        routing=routing,
        parser=parser,
        generator=generator,
        store=store,
        guard=guard,
        reply_service=reply_service,
    )


# Process-wide container
_services: Optional[ServiceContainer] = None


@lru_cache()
def get_config():
    """Get configuration singleton."""
    return load_config()


def get_services() -> ServiceContainer:
    """Get the service container singleton."""
    global _services

    if _services is None:
        _services = build_services(get_config())

    return _services


async def cleanup_resources():
    """Cleanup all resources on shutdown."""
    global _services

    if _services is not None:
        await _services.shutdown()
        _services = None

    logger.info("All resources cleaned up")
