"""
replycore FastAPI Server
Main API application
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import List

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import ServiceContainer, cleanup_resources, get_config, get_services
from .models import (
    AnalyzeRequest,
    AnalyzeResponse,
    DocumentRequest,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    HistoryItem,
    ParseRequest,
    ParseResponse,
    ProviderStatus,
    ReplyRequest,
    ReplyResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
)
from replycore import __version__
from replycore.core.exceptions import AllProvidersFailed, NoProvidersAvailable, RetrievalError
from replycore.core.models import (
    CompletionOptions,
    ComplexityContext,
    HistoryMessage,
    Message,
    VectorDocument,
    VectorMetadata,
)
from replycore.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging()
    logger.info("Starting replycore API server")
    try:
        yield
    finally:
        await cleanup_resources()
        logger.info("Shutting down replycore API server")


app = FastAPI(
    title="replycore API",
    description="AI reply generation with provider fallback, grounding and a strict output contract",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NoProvidersAvailable)
async def no_providers_handler(request: Request, exc: NoProvidersAvailable):
    logger.error(f"No providers available: {exc}")
    body = ErrorResponse(error="no_providers_available", message=str(exc), handoff=True)
    return JSONResponse(status_code=503, content=body.model_dump())


@app.exception_handler(AllProvidersFailed)
async def all_providers_failed_handler(request: Request, exc: AllProvidersFailed):
    logger.error(f"All providers failed: {exc}")
    body = ErrorResponse(
        error="all_providers_failed",
        message=str(exc),
        handoff=True,
        details={"errors": exc.errors},
    )
    return JSONResponse(status_code=503, content=body.model_dump())


def _history(items: List[HistoryItem]) -> List[HistoryMessage]:
    try:
        return [HistoryMessage.coerce(item.model_dump()) for item in items]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/health", response_model=HealthResponse)
async def health_check(services: ServiceContainer = Depends(get_services)):
    """Health check endpoint"""
    descriptors = await services.registry.descriptors()
    providers = [
        ProviderStatus(name=d.name, model_id=d.model_id, available=d.available)
        for d in descriptors
    ]
    return HealthResponse(
        status="healthy" if any(p.available for p in providers) else "degraded",
        timestamp=time.time(),
        version=__version__,
        providers=providers,
        documents=services.store.count(),
    )


@app.get("/metrics")
async def metrics_endpoint(services: ServiceContainer = Depends(get_services)):
    """Prometheus-style metrics"""
    return services.metrics.get_metrics()


@app.post("/v1/analyze", response_model=AnalyzeResponse)
async def analyze_endpoint(request: AnalyzeRequest, services: ServiceContainer = Depends(get_services)):
    """Score the complexity of a message list"""
    messages = [Message(role=m.role, content=m.content) for m in request.messages]
    context = ComplexityContext(
        lead_stage=request.lead_stage,
        conversation_length=request.conversation_length,
        requires_reasoning=request.requires_reasoning,
        task_type=request.task_type,
    )
    analysis = services.analyzer.analyze(messages, context)
    task_type = services.analyzer.detect_task_type(messages, analysis, request.task_type)
    return AnalyzeResponse(
        level=analysis.level.value,
        score=analysis.score,
        factors=list(analysis.factors),
        requires_premium=services.analyzer.requires_premium(analysis),
        task_type=task_type.value,
    )


@app.post("/v1/parse", response_model=ParseResponse)
async def parse_endpoint(request: ParseRequest, services: ServiceContainer = Depends(get_services)):
    """Validate raw model output against the output contract"""
    outcome = services.parser.parse(request.raw_text, _history(request.history))
    return ParseResponse(
        structured=outcome.structured.to_dict() if outcome.structured else None,
        raw_text=outcome.raw_text,
        parse_error=outcome.parse_error,
    )


@app.post("/v1/reply", response_model=ReplyResponse)
async def reply_endpoint(request: ReplyRequest, services: ServiceContainer = Depends(get_services)):
    """
    Generate one customer-facing reply for the conversation
    """
    start_time = time.time()
    request_id = f"reply_{uuid.uuid4().hex[:12]}"
    history = _history(request.history)

    logger.info(
        f"Processing reply: {request_id}",
        extra={"request_id": request_id},
    )

    artifact = await services.reply_service.reply(
        history,
        context=ComplexityContext(
            lead_stage=request.lead_stage,
            requires_reasoning=request.requires_reasoning,
            task_type=request.task_type,
        ),
        options=CompletionOptions(
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
            top_p=0.9,
            strict_json=True,
        ),
        attempt_timeout=request.attempt_timeout or services.config.get("routing", {}).get("attempt_timeout"),
        use_retrieval=request.use_retrieval,
    )

    latency_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"Reply completed: {request_id}",
        extra={
            "request_id": request_id,
            "provider": artifact.provider,
            "latency_ms": latency_ms,
            "success": not artifact.needs_human,
        },
    )

    return ReplyResponse(
        reply=artifact.reply,
        structured=artifact.structured.to_dict() if artifact.structured else None,
        needs_human=artifact.needs_human,
        service=artifact.service.value,
        confidence=artifact.confidence,
        parse_error=artifact.parse_error,
        provider=artifact.provider,
        escalated=artifact.escalated,
        attempts=artifact.attempts,
        latency_ms=latency_ms,
    )


@app.post("/v1/documents", response_model=DocumentResponse)
async def index_document(request: DocumentRequest, services: ServiceContainer = Depends(get_services)):
    """Index or replace a training document"""
    document = VectorDocument(
        id=request.id or uuid.uuid4().hex,
        content=request.content,
        metadata=VectorMetadata(
            title=request.title,
            type=request.type,
            source_id=request.source_id,
            language=request.language,
            stage=request.stage,
            service_key=request.service_key,
        ),
    )
    try:
        await services.store.index(document)
    except RetrievalError as e:
        logger.error(f"Indexing failed for {document.id}: {e}")
        raise HTTPException(status_code=502, detail={"error": "Indexing failed", "message": str(e)})

    return DocumentResponse(id=document.id, indexed=True, count=services.store.count())


@app.delete("/v1/documents/{document_id}")
async def remove_document(document_id: str, services: ServiceContainer = Depends(get_services)):
    """Remove a training document"""
    removed = await services.store.remove(document_id)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return {"id": document_id, "removed": True, "count": services.store.count()}


@app.delete("/v1/documents")
async def clear_documents(services: ServiceContainer = Depends(get_services)):
    """Remove every training document"""
    await services.store.clear()
    return {"cleared": True, "count": 0}


@app.post("/v1/search", response_model=SearchResponse)
async def search_endpoint(request: SearchRequest, services: ServiceContainer = Depends(get_services)):
    """Search the training documents"""
    result = await services.store.search(
        request.query,
        top_k=request.top_k,
        similarity_threshold=request.similarity_threshold,
        type_filter=request.type_filter,
    )
    return SearchResponse(
        documents=[
            SearchHit(
                id=doc.id,
                title=doc.metadata.title,
                type=doc.metadata.type,
                content=doc.content,
                score=score,
            )
            for doc, score in zip(result.documents, result.scores)
        ],
        has_relevant_training=result.has_relevant_training,
    )


def run():
    """Run the API server with uvicorn."""
    config = get_config()
    uvicorn.run(
        "replycore.api.main:app",
        host=config.get("api", {}).get("host", "0.0.0.0"),
        port=config.get("api", {}).get("port", 8000),
        log_level="info",
    )


if __name__ == "__main__":
    run()
