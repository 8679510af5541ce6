"""Core domain models for replycore."""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    """Chat message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Direction(str, Enum):
    """Direction of a conversation history message."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ComplexityLevel(str, Enum):
    """Coarse complexity bands."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskType(str, Enum):
    """Coarse task classification used for routing decisions."""

    GREETING = "greeting"
    FOLLOWUP = "followup"
    REMINDER = "reminder"
    COMPLEX = "complex"
    OTHER = "other"


class ServiceType(str, Enum):
    """Services a structured reply may be about."""

    VISIT_VISA = "visit_visa"
    FREELANCE_VISA = "freelance_visa"
    FREELANCE_PERMIT_VISA = "freelance_permit_visa"
    INVESTOR_VISA = "investor_visa"
    PRO_WORK = "pro_work"
    BUSINESS_SETUP = "business_setup"
    FAMILY_VISA = "family_visa"
    GOLDEN_VISA = "golden_visa"
    UNKNOWN = "unknown"


class Stage(str, Enum):
    """Qualification stage reported by a structured reply."""

    QUALIFY = "qualify"
    QUOTE = "quote"
    HANDOVER = "handover"


_INBOUND_ALIASES = {"inbound", "in", "customer", "user"}
_OUTBOUND_ALIASES = {"outbound", "out", "assistant", "agent"}


@dataclass(frozen=True)
class Message:
    """A single chat message sent to a provider."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": Role(self.role).value, "content": self.content}


@dataclass
class CompletionOptions:
    """Sampling options for a completion request.

    ``max_output_tokens`` of None lets each adapter apply its own default.
    """

    temperature: float = 0.7
    max_output_tokens: Optional[int] = None
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    strict_json: bool = False


@dataclass
class ComplexityContext:
    """Caller supplied hints for complexity analysis and routing."""

    lead_stage: Optional[str] = None
    conversation_length: Optional[int] = None
    has_multiple_questions: bool = False
    requires_reasoning: bool = False
    task_type: Optional[TaskType] = None


@dataclass(frozen=True)
class ComplexityAnalysis:
    """Result of complexity scoring."""

    level: ComplexityLevel
    score: int
    factors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of a provider backend."""

    name: str
    model_id: str
    cost_per_1k_input: float
    cost_per_1k_output: float
    available: bool = False


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by a provider."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class CompletionResult:
    """Normalized completion returned by every provider adapter."""

    text: str
    confidence: float
    tokens: TokenUsage
    model: str
    finish_reason: str = "stop"


@dataclass
class RoutingDecision:
    """How a request was routed."""

    provider: ProviderDescriptor
    reason: str
    complexity: ComplexityLevel
    task_type: TaskType
    estimated_cost: float
    requires_premium: bool = False


@dataclass
class RoutingOutcome:
    """Result of RoutingService.route()."""

    result: CompletionResult
    decision: RoutingDecision
    escalated: bool
    attempts: List[str] = field(default_factory=list)


@dataclass
class HistoryMessage:
    """Conversation history record consumed by the sanitizer."""

    direction: Direction
    text: str

    @classmethod
    def coerce(cls, record: Dict[str, Any]) -> "HistoryMessage":
        """Build a history message from a loosely typed record.

        Accepts direction aliases (in/customer/out/assistant) and text stored
        under ``text``, ``body`` or ``message``.

        Raises:
            ValueError: If the direction is not recognised
        """
        raw_direction = str(record.get("direction", "")).strip().lower()
        if raw_direction in _INBOUND_ALIASES:
            direction = Direction.INBOUND
        elif raw_direction in _OUTBOUND_ALIASES:
            direction = Direction.OUTBOUND
        else:
            raise ValueError(f"Unknown message direction: {record.get('direction')!r}")

        text = record.get("text")
        if text is None:
            text = record.get("body")
        if text is None:
            text = record.get("message")
        return cls(direction=direction, text=str(text or ""))


@dataclass
class StructuredReply:
    """Validated, customer-facing output of the pipeline."""

    reply: str
    service: ServiceType = ServiceType.UNKNOWN
    stage: Stage = Stage.QUALIFY
    needs_human: bool = False
    missing: List[str] = field(default_factory=list)
    confidence: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "service": self.service.value,
            "stage": self.stage.value,
            "needsHuman": self.needs_human,
            "missing": list(self.missing),
            "confidence": self.confidence,
        }


@dataclass
class ParseOutcome:
    """Result of parsing raw model text against the output contract."""

    structured: Optional[StructuredReply]
    raw_text: str
    parse_error: Optional[str] = None


@dataclass
class ReplyArtifact:
    """Artifact returned to the calling layer for one conversational turn."""

    reply: str
    structured: Optional[StructuredReply]
    raw_text: str
    needs_human: bool
    service: ServiceType
    confidence: float
    parse_error: Optional[str] = None
    provider: Optional[str] = None
    escalated: bool = False
    attempts: int = 0


@dataclass(frozen=True)
class UsageLogEntry:
    """Append-only record of one completion attempt."""

    provider: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    success: bool
    reason: str
    complexity: Optional[str] = None
    task_type: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
            "success": self.success,
            "reason": self.reason,
            "complexity": self.complexity,
            "task_type": self.task_type,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class VectorMetadata:
    """Metadata stored alongside an indexed document."""

    title: str
    type: str = "general"
    source_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    language: Optional[str] = None
    stage: Optional[str] = None
    service_key: Optional[str] = None


@dataclass
class VectorDocument:
    """A document in the retrieval store."""

    id: str
    content: str
    metadata: VectorMetadata
    embedding: Optional[List[float]] = None


@dataclass
class SearchResult:
    """Documents and their aligned similarity scores."""

    documents: List[VectorDocument] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    has_relevant_training: bool = False


__all__ = [
    "Role",
    "Direction",
    "ComplexityLevel",
    "TaskType",
    "ServiceType",
    "Stage",
    "Message",
    "CompletionOptions",
    "ComplexityContext",
    "ComplexityAnalysis",
    "ProviderDescriptor",
    "TokenUsage",
    "CompletionResult",
    "RoutingDecision",
    "RoutingOutcome",
    "HistoryMessage",
    "StructuredReply",
    "ParseOutcome",
    "ReplyArtifact",
    "UsageLogEntry",
    "VectorMetadata",
    "VectorDocument",
    "SearchResult",
]
