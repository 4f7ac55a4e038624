"""Document ingestion pipeline: bytes -> text -> chunks -> vectors -> store.

Steps, for one document, while holding the per-document lock (and, without
overwrite, the per-content-hash lock so identical bytes under two names are
never stored twice):
1. Without overwrite, a known content hash short-circuits ("duplicate detected").
2. Without overwrite, a known (document_name, industry) pair short-circuits
   ("already processed").
3. With overwrite, every existing chunk of the document is deleted first.
4. Extract, chunk, embed in batches, insert each (chunk, vector).
5. Any failure in step 4 deletes whatever this run inserted, so a document is
   either fully stored or absent.

Duplicates are reported as normal results, never raised.
"""
import logging
from contextlib import ExitStack
from typing import Callable, Optional

from industry_rag.chunking import TextChunker, chunk_stats
from industry_rag.domain import PipelineResult, PipelineStats
from industry_rag.embedding import EmbeddingService
from industry_rag.errors import RagError, ValidationError
from industry_rag.extraction import extract_text
from industry_rag.locks import DocumentLock, KeyedLock, document_key, hash_key
from industry_rag.obs import span
from industry_rag.store import VectorStore

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Duplicate detected: identical document content has already been processed."
ALREADY_PROCESSED_MESSAGE = "Document already processed. Set overwrite=true to reprocess."
SUCCESS_MESSAGE = "Document processed successfully!"
FAILURE_MESSAGE = "Pipeline failed"


class IngestionPipeline:
    """Ingest documents into a VectorStore with dedup and all-or-nothing writes.

    Args:
        store: Destination vector store.
        embedder: Embedding service (same one the router uses for queries).
        chunker: Configured TextChunker.
        industries: Accepted industry names.
        locks: Per-document lock; defaults to an in-process KeyedLock.
        extractor: bytes -> text; defaults to extraction.extract_text.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingService,
        chunker: TextChunker,
        industries,
        locks: Optional[DocumentLock] = None,
        extractor: Callable[[bytes], str] = extract_text,
    ):
        self.store = store
        self.embedder = embedder
        self.chunker = chunker
        self.industries = list(industries)
        self.locks = locks or KeyedLock()
        self.extractor = extractor

    def _validate(self, document_name: str, industry: str, content_hash: str) -> None:
        if not document_name or not document_name.strip():
            raise ValidationError("document_name is required")
        if not industry:
            raise ValidationError("industry is required")
        if industry not in self.industries:
            raise ValidationError(
                f"unsupported industry {industry!r}; expected one of {', '.join(self.industries)}"
            )
        if not content_hash:
            raise ValidationError("content_hash is required")

    def ingest(
        self,
        source: bytes,
        industry: str,
        content_hash: str,
        overwrite: bool = False,
        document_name: str = "",
    ) -> PipelineResult:
        """Ingest one document.

        Args:
            source: Raw document bytes.
            industry: Industry the document belongs to.
            content_hash: SHA-256 of source (see extraction.content_hash).
            overwrite: Replace an existing document with the same name and industry.
            document_name: Name the chunks are stored under.

        Returns:
            PipelineResult: success with stats, a duplicate short-circuit, or a
                failure carrying `error` with zeroed stats.

        Raises:
            ValidationError: On missing name/industry/hash or an unsupported industry.
        """
        self._validate(document_name, industry, content_hash)
        logger.info(
            "Starting ingestion of %s (%s, overwrite=%s)", document_name, industry, overwrite
        )
        with ExitStack() as held:
            # Hash lock before name lock, always in this order.
            if not overwrite:
                held.enter_context(self.locks.hold(hash_key(content_hash)))
            held.enter_context(self.locks.hold(document_key(document_name, industry)))
            with span("ingest.document", {"document": document_name, "industry": industry, "overwrite": overwrite}):
                return self._ingest_locked(source, industry, content_hash, overwrite, document_name)

    def _ingest_locked(
        self,
        source: bytes,
        industry: str,
        content_hash: str,
        overwrite: bool,
        document_name: str,
    ) -> PipelineResult:
        try:
            if not overwrite and self.store.exists_by_hash(content_hash):
                logger.info("Skipping %s: content hash %s already stored", document_name, content_hash[:12])
                return PipelineResult(
                    success=False,
                    document_name=document_name,
                    message=DUPLICATE_MESSAGE,
                    skipped_reason="duplicate_hash",
                )

            exists = self.store.exists_by_name(document_name, industry)
            if exists and not overwrite:
                logger.info("Skipping %s: already processed for %s", document_name, industry)
                return PipelineResult(
                    success=False,
                    document_name=document_name,
                    message=ALREADY_PROCESSED_MESSAGE,
                    skipped_reason="already_processed",
                )
            if exists:
                deleted = self.store.delete_by_document(document_name, industry)
                logger.info("Deleted %d existing chunks of %s before re-ingestion", deleted, document_name)
        except RagError as exc:
            logger.error("Ingestion of %s failed before processing: %s", document_name, exc)
            return self._failed(document_name, exc)

        attempted = False
        try:
            with span("ingest.extract"):
                text = self.extractor(source)
            logger.info("Extracted %d characters from %s", len(text), document_name)

            with span("ingest.chunk"):
                chunks = self.chunker.chunk(text)
            if not chunks:
                raise ValidationError(f"{document_name} contains no extractable text")
            stats = chunk_stats(chunks)
            logger.info("Created %d chunks (avg: %d chars)", stats.total_chunks, stats.avg_chunk_size)

            with span("ingest.embed", {"chunks": len(chunks)}):
                vectors = self.embedder.embed([c.content for c in chunks])
            logger.info("Generated %d embeddings", len(vectors))

            inserted = 0
            with span("ingest.store", {"chunks": len(chunks)}):
                for chunk, vector in zip(chunks, vectors):
                    attempted = True
                    self.store.insert(chunk, vector, document_name, industry, content_hash)
                    inserted += 1
            logger.info("Inserted %d rows for %s (%s)", inserted, document_name, industry)
        except RagError as exc:
            logger.error("Ingestion of %s failed: %s", document_name, exc)
            if attempted:
                self._compensate(document_name, industry)
            return self._failed(document_name, exc)
        except BaseException:
            if attempted:
                self._compensate(document_name, industry)
            raise

        return PipelineResult(
            success=True,
            document_name=document_name,
            message=SUCCESS_MESSAGE,
            stats=PipelineStats(
                text_length=len(text),
                total_chunks=stats.total_chunks,
                avg_chunk_size=stats.avg_chunk_size,
                inserted_rows=inserted,
            ),
        )

    def _compensate(self, document_name: str, industry: str) -> None:
        """Delete rows written by an aborted run; the lock guarantees they are ours."""
        try:
            removed = self.store.delete_by_document(document_name, industry)
        except RagError:
            logger.exception("Compensating delete for %s (%s) failed", document_name, industry)
            raise
        logger.warning("Rolled back %d partially inserted chunks of %s", removed, document_name)

    @staticmethod
    def _failed(document_name: str, exc: Exception) -> PipelineResult:
        return PipelineResult(
            success=False,
            document_name=document_name,
            message=FAILURE_MESSAGE,
            error=str(exc),
        )
