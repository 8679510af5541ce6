"""Pytest configuration and fixtures."""

import pytest
from typing import Dict, Any, List

from replycore.application.contract import OutputContractParser, Sanitizer
from replycore.application.routing import RoutingService
from replycore.core.models import (
    Direction,
    HistoryMessage,
    Message,
    Role,
    VectorDocument,
    VectorMetadata,
)
from replycore.infrastructure.embeddings import MockEmbedding
from replycore.infrastructure.observability.metrics import MetricsCollector
from replycore.infrastructure.providers import MockProviderAdapter, ProviderRegistry
from replycore.infrastructure.usage import MemoryUsageSink, UsageLogger
from replycore.infrastructure.vector_store import MemoryRetrievalStore

VALID_REPLY = (
    '{"reply": "Could you tell me whether you are currently inside or outside the UAE?", '
    '"service": "visit_visa", "stage": "qualify", "needsHuman": false, '
    '"missing": ["location"], "confidence": 0.85}'
)


@pytest.fixture
def mock_config() -> Dict[str, Any]:
    """Mock configuration for testing."""
    return {
        "api": {
            "host": "0.0.0.0",
            "port": 8000
        },
        "routing": {
            "preference": ["primary", "secondary"],
            "attempt_timeout": None
        },
        "providers": {
            "primary": {"type": "mock", "cost_per_1k_input": 0.001, "cost_per_1k_output": 0.002},
            "secondary": {"type": "mock"}
        },
        "integrations": {},
        "retrieval": {
            "embedding_model": "mock",
            "embedding_dimension": 128,
            "max_embedding_chars": 8000,
            "top_k": 5,
            "similarity_threshold": 0.7
        },
        "contract": {
            "max_generation_attempts": 2,
            "raw_fallback_chars": 300,
            "parrot_distance": 50,
            "repetition_threshold": 0.8,
            "repetition_window": 3
        },
        "usage": {
            "sink": "memory"
        },
        "observability": {
            "metrics_enabled": True
        }
    }


@pytest.fixture
def user_messages() -> List[Message]:
    return [
        Message(role=Role.SYSTEM, content="Return JSON."),
        Message(role=Role.USER, content="Hi, I need a visit visa"),
    ]


@pytest.fixture
def history() -> List[HistoryMessage]:
    """A short conversation, oldest first."""
    return [
        HistoryMessage(direction=Direction.INBOUND, text="Hello, I want a mainland license"),
        HistoryMessage(direction=Direction.OUTBOUND, text="Thanks for your message. Which activity will the company carry out?"),
        HistoryMessage(direction=Direction.INBOUND, text="General trading, my visa expires on 15 March 2025"),
    ]


@pytest.fixture
def usage_sink() -> MemoryUsageSink:
    return MemoryUsageSink()


@pytest.fixture
def usage_logger(usage_sink) -> UsageLogger:
    return UsageLogger(usage_sink)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector({"metrics_enabled": True})


@pytest.fixture
def make_routing(usage_logger, metrics):
    """Build a RoutingService over the given mock adapters, preferred in order."""

    def _make(*adapters: MockProviderAdapter, preference=None) -> RoutingService:
        registry = ProviderRegistry(adapters)
        return RoutingService(
            registry,
            usage_logger=usage_logger,
            metrics=metrics,
            preference=preference if preference is not None else [a.name for a in adapters],
        )

    return _make


@pytest.fixture
def parser() -> OutputContractParser:
    return OutputContractParser(Sanitizer())


@pytest.fixture
def mock_embedding_model():
    """Mock embedding model fixture."""
    return MockEmbedding(dimension=128)


@pytest.fixture
def retrieval_store(mock_config, mock_embedding_model):
    """In-memory retrieval store fixture."""
    return MemoryRetrievalStore(mock_config["retrieval"], mock_embedding_model)


@pytest.fixture
def sample_documents() -> List[VectorDocument]:
    """Sample training documents."""
    return [
        VectorDocument(
            id="doc-visit",
            content="Visit visa requirements: passport copy valid for six months and a passport photo.",
            metadata=VectorMetadata(title="Visit visa", type="faq", service_key="visit_visa"),
        ),
        VectorDocument(
            id="doc-golden",
            content="Golden visa eligibility depends on property investment or professional salary.",
            metadata=VectorMetadata(title="Golden visa", type="guide", service_key="golden_visa"),
        ),
        VectorDocument(
            id="doc-setup",
            content="Business setup in mainland requires a trade license and an office lease.",
            metadata=VectorMetadata(title="Mainland setup", type="guide", source_id="src-1"),
        ),
    ]


@pytest.fixture
def valid_reply() -> str:
    """Raw model output that satisfies the output contract."""
    return VALID_REPLY
