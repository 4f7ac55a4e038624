"""Vector store contract and its implementations.

Defines:
- VectorStore: the persistence/search contract consumed by ingestion and retrieval.
- PgVectorStore: PostgreSQL + pgvector implementation using SQLAlchemy sessions.
  Similarity is 1 - cosine distance (pgvector `<=>`).
- InMemoryVectorStore: thread-safe process-local implementation for development
  and tests, using the same cosine similarity.

Every implementation returns search results with similarity in [0, 1], filtered to
similarity >= min_similarity, sorted descending with ties broken by ascending
chunk index, capped at top_k.
"""
import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from industry_rag.db import SessionLocal, session_scope
from industry_rag.domain import Chunk, DocumentRecord, RetrievalResult
from industry_rag.errors import StoreError

logger = logging.getLogger(__name__)

# Float tolerance on the SQL distance bound; results are re-filtered on similarity.
DISTANCE_SLACK = 1e-9


class VectorStore(Protocol):
    def insert(
        self,
        chunk: Chunk,
        vector: Sequence[float],
        document_name: str,
        industry: str,
        content_hash: Optional[str],
    ) -> int:
        ...

    def delete_by_document(self, document_name: str, industry: Optional[str] = None) -> int:
        ...

    def exists_by_name(self, document_name: str, industry: Optional[str] = None) -> bool:
        ...

    def exists_by_hash(self, content_hash: str) -> bool:
        ...

    def similarity_search(
        self,
        query_vector: Sequence[float],
        top_k: int,
        min_similarity: float,
        industry: Optional[str] = None,
    ) -> List[RetrievalResult]:
        ...

    def list_documents(self) -> List[DocumentRecord]:
        ...

    def get_document_chunks(self, document_name: str, industry: Optional[str] = None) -> List[Chunk]:
        ...


def _clamp_similarity(sim: float) -> float:
    return max(0.0, min(1.0, float(sim)))


def _rank(results: List[RetrievalResult], top_k: int) -> List[RetrievalResult]:
    results.sort(key=lambda r: (-r.similarity, r.chunk.index, r.document_name))
    return results[:top_k]


def _vector_literal(vec: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(x)) for x in vec) + "]"


@contextmanager
def _store_errors(op: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Vector store %s failed: %s", op, exc)
        raise StoreError(f"{op} failed: {exc}") from exc


class PgVectorStore:
    """pgvector-backed store over the documents_chat table.

    Each operation runs in its own transactional session, so inserted rows are
    committed one by one; callers needing all-or-nothing documents must delete
    on failure (see IngestionPipeline).
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def insert(self, chunk, vector, document_name, industry, content_hash) -> int:
        from industry_rag.models import DocumentChunk

        with _store_errors("insert"), session_scope(self._session_factory) as db:
            row = DocumentChunk(
                document_name=document_name,
                industry=industry,
                document_hash=content_hash,
                chunk_index=chunk.index,
                start_char=chunk.start_char,
                end_char=chunk.end_char,
                char_count=chunk.char_count,
                content=chunk.content,
                embedding=list(vector),
            )
            db.add(row)
            db.flush()
            return int(row.id)

    @staticmethod
    def _document_filter(document_name: str, industry: Optional[str]) -> Tuple[str, Dict[str, str]]:
        where = "document_name = :name"
        params = {"name": document_name}
        if industry:
            where += " AND industry = :industry"
            params["industry"] = industry
        return where, params

    def delete_by_document(self, document_name, industry=None) -> int:
        where, params = self._document_filter(document_name, industry)
        with _store_errors("delete"), session_scope(self._session_factory) as db:
            res = db.execute(text(f"DELETE FROM documents_chat WHERE {where}"), params)
            deleted = int(res.rowcount or 0)
        logger.info("Deleted %d chunks for document %s (%s)", deleted, document_name, industry or "any")
        return deleted

    def exists_by_name(self, document_name, industry=None) -> bool:
        where, params = self._document_filter(document_name, industry)
        with _store_errors("exists_by_name"), session_scope(self._session_factory) as db:
            row = db.execute(text(f"SELECT 1 FROM documents_chat WHERE {where} LIMIT 1"), params).first()
        return row is not None

    def exists_by_hash(self, content_hash) -> bool:
        with _store_errors("exists_by_hash"), session_scope(self._session_factory) as db:
            row = db.execute(
                text("SELECT 1 FROM documents_chat WHERE document_hash = :h LIMIT 1"),
                {"h": content_hash},
            ).first()
        return row is not None

    def similarity_search(self, query_vector, top_k, min_similarity, industry=None) -> List[RetrievalResult]:
        """Cosine similarity search with threshold and optional industry filter.

        Args:
            query_vector: Embedded query.
            top_k: Maximum number of results.
            min_similarity: Minimum similarity (1 - cosine distance) to keep.
            industry: Restrict to one industry when given.

        Returns:
            List[RetrievalResult]: Ranked results.
        """
        # WHERE and ORDER BY use the raw distance expression the ivfflat index is built on.
        conds = ["embedding <=> CAST(:qvec AS vector) <= :max_dist"]
        params = {
            "qvec": _vector_literal(query_vector),
            "max_dist": 1.0 - float(min_similarity) + DISTANCE_SLACK,
            "limit": int(top_k),
        }
        if industry:
            conds.append("industry = :industry")
            params["industry"] = industry
        sql = text(
            f"""
            SELECT document_name, industry, chunk_index, start_char, end_char, char_count, content,
                1 - (embedding <=> CAST(:qvec AS vector)) AS similarity
            FROM documents_chat
            WHERE {" AND ".join(conds)}
            ORDER BY embedding <=> CAST(:qvec AS vector) ASC, chunk_index ASC
            LIMIT :limit
            """
        )
        with _store_errors("similarity_search"), session_scope(self._session_factory) as db:
            rows = db.execute(sql, params).mappings().all()

        results = [
            RetrievalResult(
                chunk=Chunk(
                    content=r["content"],
                    index=int(r["chunk_index"]),
                    start_char=int(r["start_char"]),
                    end_char=int(r["end_char"]),
                    char_count=int(r["char_count"]),
                ),
                document_name=r["document_name"],
                industry=r["industry"],
                similarity=_clamp_similarity(r["similarity"]),
            )
            for r in rows
        ]
        # Clamping can only merge ties; re-rank to keep the index tie-break exact.
        results = [r for r in results if r.similarity >= min_similarity]
        return _rank(results, top_k)

    def list_documents(self) -> List[DocumentRecord]:
        sql = text(
            """
            SELECT document_name, industry, MAX(document_hash) AS document_hash, COUNT(*) AS chunk_count
            FROM documents_chat
            GROUP BY document_name, industry
            ORDER BY document_name, industry
            """
        )
        with _store_errors("list_documents"), session_scope(self._session_factory) as db:
            rows = db.execute(sql).mappings().all()
        return [
            DocumentRecord(
                name=r["document_name"],
                industry=r["industry"],
                content_hash=r["document_hash"],
                chunk_count=int(r["chunk_count"]),
            )
            for r in rows
        ]

    def get_document_chunks(self, document_name, industry=None) -> List[Chunk]:
        where, params = self._document_filter(document_name, industry)
        sql = text(
            f"""
            SELECT chunk_index, start_char, end_char, char_count, content
            FROM documents_chat
            WHERE {where}
            ORDER BY chunk_index ASC
            """
        )
        with _store_errors("get_document_chunks"), session_scope(self._session_factory) as db:
            rows = db.execute(sql, params).mappings().all()
        return [
            Chunk(
                content=r["content"],
                index=int(r["chunk_index"]),
                start_char=int(r["start_char"]),
                end_char=int(r["end_char"]),
                char_count=int(r["char_count"]),
            )
            for r in rows
        ]


@dataclass
class _Row:
    id: int
    chunk: Chunk
    vector: List[float]
    document_name: str
    industry: str
    content_hash: Optional[str]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero norm."""
    if len(a) != len(b):
        raise StoreError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


class InMemoryVectorStore:
    """Process-local VectorStore guarded by a single lock."""

    def __init__(self):
        self._rows: List[_Row] = []
        self._next_id = 1
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    @staticmethod
    def _matches(row: _Row, document_name: str, industry: Optional[str]) -> bool:
        return row.document_name == document_name and (not industry or row.industry == industry)

    def insert(self, chunk, vector, document_name, industry, content_hash) -> int:
        with self._lock:
            row_id = self._next_id
            self._next_id += 1
            self._rows.append(_Row(row_id, chunk, list(vector), document_name, industry, content_hash))
            return row_id

    def delete_by_document(self, document_name, industry=None) -> int:
        with self._lock:
            before = len(self._rows)
            self._rows = [r for r in self._rows if not self._matches(r, document_name, industry)]
            return before - len(self._rows)

    def exists_by_name(self, document_name, industry=None) -> bool:
        with self._lock:
            return any(self._matches(r, document_name, industry) for r in self._rows)

    def exists_by_hash(self, content_hash) -> bool:
        with self._lock:
            return any(r.content_hash == content_hash for r in self._rows)

    def similarity_search(self, query_vector, top_k, min_similarity, industry=None) -> List[RetrievalResult]:
        with self._lock:
            rows = [r for r in self._rows if not industry or r.industry == industry]
        results: List[RetrievalResult] = []
        for r in rows:
            sim = _clamp_similarity(cosine_similarity(query_vector, r.vector))
            if sim >= min_similarity:
                results.append(RetrievalResult(r.chunk, r.document_name, r.industry, sim))
        return _rank(results, top_k)

    def list_documents(self) -> List[DocumentRecord]:
        counts: Dict[Tuple[str, str], List] = {}
        with self._lock:
            for r in self._rows:
                entry = counts.setdefault((r.document_name, r.industry), [r.content_hash, 0])
                entry[1] += 1
        return [
            DocumentRecord(name=name, industry=industry, content_hash=h, chunk_count=n)
            for (name, industry), (h, n) in sorted(counts.items())
        ]

    def get_document_chunks(self, document_name, industry=None) -> List[Chunk]:
        with self._lock:
            chunks = [r.chunk for r in self._rows if self._matches(r, document_name, industry)]
        return sorted(chunks, key=lambda c: c.index)
