"""Retriever-first gate: only answer topics the knowledge base covers."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from replycore.core.interfaces import IRetrievalStore
from replycore.core.models import Message, Role
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

OUT_OF_SCOPE_RESPONSE = (
    "I'm only trained to assist with specific business topics. "
    "A human agent will follow up with you on this question."
)
TECHNICAL_ISSUE_RESPONSE = "I'm experiencing a technical issue. A human agent will follow up with you."


@dataclass
class RelevantDocument:
    title: str
    content: str
    type: str
    similarity: float


@dataclass
class GuardResult:
    """Whether the AI may answer, and the grounding it may use."""

    can_respond: bool
    reason: str
    relevant_documents: List[RelevantDocument] = field(default_factory=list)
    requires_human: bool = False
    suggested_response: Optional[str] = None


class RetrievalGuard:
    """Checks the retrieval store before a reply is generated.

    A query may be answered only when at least one document scores at or
    above the threshold and, if subject tags are set, one of the matching
    documents mentions a tag in its title or content. Retrieval errors fail
    safe by requiring a human.
    """

    def __init__(
        self,
        store: IRetrievalStore,
        similarity_threshold: float = 0.7,
        top_k: int = 5,
        subject_tags: Optional[Sequence[str]] = None,
        max_content_chars: int = 1000,
    ):
        self.store = store
        self.similarity_threshold = similarity_threshold
        self.top_k = top_k
        self.subject_tags = list(subject_tags or [])
        self.max_content_chars = max_content_chars

    async def check(
        self,
        query: str,
        subject_tags: Optional[Sequence[str]] = None,
        allowed_source_ids: Optional[Iterable[str]] = None,
    ) -> GuardResult:
        tags = list(subject_tags) if subject_tags is not None else self.subject_tags

        try:
            results = await self.store.search(
                query,
                top_k=self.top_k,
                similarity_threshold=self.similarity_threshold,
                allowed_source_ids=allowed_source_ids,
            )
        except Exception as e:
            logger.error(f"Retrieval guard error: {e}")
            return _refusal(f"Error during retrieval: {e}", TECHNICAL_ISSUE_RESPONSE)

        if not results.has_relevant_training or not results.documents or not results.scores:
            return _refusal(
                "No relevant training found for this topic. The AI has not been trained on this subject."
            )

        if tags:
            lowered = [t.lower() for t in tags]
            matched = any(
                tag in doc.metadata.title.lower() or tag in doc.content.lower()
                for doc in results.documents
                for tag in lowered
            )
            if not matched:
                return _refusal(f"Query does not match required subject tags: {', '.join(tags)}")

        max_score = max(results.scores)
        if max_score < self.similarity_threshold:
            return _refusal(
                f"Highest similarity score ({max_score:.2f}) is below threshold ({self.similarity_threshold})"
            )

        documents = [
            RelevantDocument(
                title=doc.metadata.title or "Untitled",
                content=(doc.content or "")[: self.max_content_chars],
                type=doc.metadata.type or "unknown",
                similarity=score,
            )
            for doc, score in zip(results.documents, results.scores)
        ]
        return GuardResult(
            can_respond=True,
            reason=f"Found {len(documents)} relevant training document(s) with similarity >= {self.similarity_threshold}",
            relevant_documents=documents,
        )


def grounding_message(result: GuardResult) -> Optional[Message]:
    """Format the guard's documents as a system message, or None if there are none."""
    if not result.relevant_documents:
        return None

    sections = [
        f"[{i}] {doc.title} ({doc.type})\n{doc.content}"
        for i, doc in enumerate(result.relevant_documents, start=1)
    ]
    content = (
        "Use ONLY the following training documents as factual grounding. "
        "Do not state facts that are not supported by them.\n\n" + "\n\n".join(sections)
    )
    return Message(role=Role.SYSTEM, content=content)


def _refusal(reason: str, suggested: str = OUT_OF_SCOPE_RESPONSE) -> GuardResult:
    logger.info(f"Retrieval guard refused: {reason}")
    return GuardResult(
        can_respond=False,
        reason=reason,
        requires_human=True,
        suggested_response=suggested,
    )
