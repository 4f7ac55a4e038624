"""Plain domain types shared by the ingestion and answering pipelines.

- Chunk: a trimmed, offset-tagged slice of a document's text.
- RetrievalResult: a stored chunk returned by a similarity search.
- DocumentRecord: per-document summary used for dedup reporting and stats.
- PipelineStats / PipelineResult: outcome of ingesting one document.
- QueryClassification: closed set of query intents.
- Confidence: coarse confidence band attached to answers.
- AnswerResult: response contract of the answering path.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional


@dataclass(frozen=True)
class Chunk:
    """A bounded substring of a source document.

    Attributes:
        content: Whitespace-trimmed text, equal to text[start_char:end_char].
        index: Position of the chunk within its document (0-based).
        start_char: Offset of the first character in the source text.
        end_char: Offset one past the last character in the source text.
        char_count: Length of content.
    """
    content: str
    index: int
    start_char: int
    end_char: int
    char_count: int


@dataclass(frozen=True)
class RetrievalResult:
    """A chunk matched by similarity search, with its normalized score in [0, 1]."""
    chunk: Chunk
    document_name: str
    industry: str
    similarity: float


@dataclass(frozen=True)
class DocumentRecord:
    name: str
    industry: str
    content_hash: Optional[str]
    chunk_count: int


class QueryClassification(str, Enum):
    """Intent of a live user query; exactly one per query."""
    SOCIAL = "social"
    TOPICS_INQUIRY = "topics_inquiry"
    FOLLOW_UP = "follow_up"
    ON_TOPIC = "on_topic"
    OFF_TOPIC = "off_topic"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SkippedReason = Literal["duplicate_hash", "already_processed"]


@dataclass
class PipelineStats:
    text_length: int = 0
    total_chunks: int = 0
    avg_chunk_size: int = 0
    inserted_rows: int = 0


@dataclass
class PipelineResult:
    """Outcome of one ingestion run.

    Attributes:
        success: True only when every chunk of the document was stored.
        document_name: Name the document is stored under.
        stats: Text/chunk/row counts; zeroed unless success is True.
        message: Human-readable summary.
        error: Cause of a failed run, if any.
        skipped_reason: Set when the run short-circuited on a dedup key.
    """
    success: bool
    document_name: str
    message: str
    stats: PipelineStats = field(default_factory=PipelineStats)
    error: Optional[str] = None
    skipped_reason: Optional[SkippedReason] = None


@dataclass
class AnswerResult:
    """Response contract of the answering path."""
    answer: str
    classification: QueryClassification
    confidence: Confidence
    sources: List[str] = field(default_factory=list)
    chunks_found: int = 0
    topics: List[str] = field(default_factory=list)
    error: Optional[str] = None
