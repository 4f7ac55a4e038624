"""Database ORM models.

Defines the persistent entity behind the pgvector store:
- DocumentChunk: one embedded chunk of an ingested document, tagged with its
  document name, industry, content hash and character offsets. Indexes exist on
  (document_name, industry) and document_hash, the two dedup keys.
"""
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from industry_rag.config import settings
from industry_rag.db import Base


class DocumentChunk(Base):
    """Vector-embedded document chunk used for retrieval.

    Notes:
        The embedding dimension is derived from settings.EMBEDDING_DIM and must
        match the embedding model configured in industry_rag.config.Settings.
    """
    __tablename__ = "documents_chat"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Document level metadata
    document_name = Column(String(512), nullable=False)
    industry = Column(String(64), nullable=False)
    document_hash = Column(String(64), nullable=True)

    # Chunk level metadata
    chunk_index = Column(Integer, nullable=False)
    start_char = Column(Integer, nullable=False)
    end_char = Column(Integer, nullable=False)
    char_count = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)

    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_documents_chat_name_industry", "document_name", "industry"),
        Index("idx_documents_chat_hash", "document_hash"),
    )
