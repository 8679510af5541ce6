"""
Pydantic models for the replycore API
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Any, Optional

from replycore.core.models import Role, TaskType


class MessageModel(BaseModel):
    """Chat message"""

    role: Role = Field(..., description="system, user or assistant")
    content: str = Field(..., description="Message text")


class HistoryItem(BaseModel):
    """Conversation history record; text may arrive as text, body or message"""

    direction: str = Field(..., description="inbound/outbound or an alias")
    text: Optional[str] = None
    body: Optional[str] = None
    message: Optional[str] = None


class AnalyzeRequest(BaseModel):
    """Request model for complexity analysis"""

    messages: List[MessageModel] = Field(..., min_length=1)
    lead_stage: Optional[str] = None
    conversation_length: Optional[int] = Field(None, ge=0)
    requires_reasoning: bool = False
    task_type: Optional[TaskType] = None


class AnalyzeResponse(BaseModel):
    level: str
    score: int
    factors: List[str]
    requires_premium: bool
    task_type: str


class ParseRequest(BaseModel):
    """Request model for contract parsing"""

    raw_text: str = Field(..., description="Raw model output")
    history: List[HistoryItem] = Field(default_factory=list)


class ParseResponse(BaseModel):
    structured: Optional[Dict[str, Any]] = None
    raw_text: str
    parse_error: Optional[str] = None


class ReplyRequest(BaseModel):
    """Request model for reply generation"""

    history: List[HistoryItem] = Field(..., min_length=1, description="Conversation so far")
    lead_stage: Optional[str] = None
    task_type: Optional[TaskType] = None
    requires_reasoning: bool = False
    use_retrieval: bool = True
    temperature: float = Field(0.3, ge=0.0, le=2.0, description="LLM temperature")
    max_tokens: int = Field(500, ge=1, le=4096, description="Maximum tokens in response")
    attempt_timeout: Optional[float] = Field(None, gt=0, description="Seconds per provider attempt")


class ReplyResponse(BaseModel):
    """Response model for reply generation"""

    reply: str
    structured: Optional[Dict[str, Any]] = None
    needs_human: bool
    service: str
    confidence: float
    parse_error: Optional[str] = None
    provider: Optional[str] = None
    escalated: bool = False
    attempts: int = 0
    latency_ms: int = 0


class DocumentRequest(BaseModel):
    """Request model for indexing a training document"""

    id: Optional[str] = Field(None, description="Document id; generated when omitted")
    content: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    type: str = "general"
    source_id: Optional[str] = None
    language: Optional[str] = None
    stage: Optional[str] = None
    service_key: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v):
        if not v.strip():
            raise ValueError("Content cannot be empty")
        return v


class DocumentResponse(BaseModel):
    id: str
    indexed: bool
    count: int


class SearchRequest(BaseModel):
    """Request model for retrieval search"""

    query: str = Field(..., min_length=1, max_length=8000)
    top_k: int = Field(5, ge=1, le=50)
    similarity_threshold: float = Field(0.7, ge=0.0, le=1.5)
    type_filter: Optional[str] = None


class SearchHit(BaseModel):
    id: str
    title: str
    type: str
    content: str
    score: float


class SearchResponse(BaseModel):
    documents: List[SearchHit] = Field(default_factory=list)
    has_relevant_training: bool


class ProviderStatus(BaseModel):
    name: str
    model_id: str
    available: bool


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(..., description="Overall health status")
    timestamp: float = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    providers: List[ProviderStatus] = Field(..., description="Provider availability")
    documents: int = Field(0, description="Indexed training documents")


class ErrorResponse(BaseModel):
    """Error response model"""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    handoff: bool = Field(False, description="Caller should hand the turn to a human")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
