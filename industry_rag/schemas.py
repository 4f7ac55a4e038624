"""Pydantic request/response schemas for the API.

Defines the public contracts used by the FastAPI endpoints:
- HistoryTurn / ChatRequest / ChatResponse: the answerQuery operation.
- PipelineStatsModel / PipelineResponse: the ingestDocument operation.
- DocumentInfo / DocumentsResponse: stored document listing.
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from industry_rag.domain import AnswerResult, PipelineResult


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request body for asking a question.

    Attributes:
        query: The user question.
        industry: Industry scope for classification and retrieval.
        history: Prior conversation turns, oldest first.
    """
    query: str = Field(..., min_length=1, description="User question")
    industry: str = Field(..., min_length=1, description="Industry scope, e.g. Finance")
    history: List[HistoryTurn] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Answer with its grounding metadata.

    Attributes:
        answer: Answer text (an apology when `error` is set).
        sources: One entry per retrieved chunk used for the answer.
        confidence: high | medium | low.
        chunks_found: Number of chunks that passed the similarity threshold.
        classification: Resolved query intent.
        topics: Sampled catalog topics for topic inquiries.
        error: Provider/store failure description, if any.
    """
    answer: str
    sources: List[str]
    confidence: Literal["high", "medium", "low"]
    chunks_found: int
    classification: str
    topics: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: AnswerResult) -> "ChatResponse":
        return cls(
            answer=result.answer,
            sources=result.sources,
            confidence=result.confidence.value,
            chunks_found=result.chunks_found,
            classification=result.classification.value,
            topics=result.topics,
            error=result.error,
        )


class PipelineStatsModel(BaseModel):
    text_length: int
    total_chunks: int
    avg_chunk_size: int
    inserted_rows: int


class PipelineResponse(BaseModel):
    success: bool
    document_name: str
    stats: PipelineStatsModel
    message: str
    error: Optional[str] = None
    skipped_reason: Optional[str] = None

    @classmethod
    def from_result(cls, result: PipelineResult) -> "PipelineResponse":
        return cls(
            success=result.success,
            document_name=result.document_name,
            stats=PipelineStatsModel(
                text_length=result.stats.text_length,
                total_chunks=result.stats.total_chunks,
                avg_chunk_size=result.stats.avg_chunk_size,
                inserted_rows=result.stats.inserted_rows,
            ),
            message=result.message,
            error=result.error,
            skipped_reason=result.skipped_reason,
        )


class DocumentInfo(BaseModel):
    name: str
    industry: str
    content_hash: Optional[str] = None
    chunk_count: int


class DocumentsResponse(BaseModel):
    total_chunks: int
    unique_documents: int
    documents: List[DocumentInfo]
    industries: Dict[str, int]
