"""Shared pytest fixtures and fakes for the industry_rag test suite."""
import random
from typing import Dict, List, Optional

import pytest

from industry_rag.catalog import TopicCatalog
from industry_rag.chunking import TextChunker
from industry_rag.embedding import EmbeddingService
from industry_rag.errors import ProviderError, StoreError
from industry_rag.ingestion.pipeline import IngestionPipeline
from industry_rag.router import RetrievalRouter
from industry_rag.store import InMemoryVectorStore

INDUSTRIES = ["Finance", "Education", "Healthcare"]

DEFAULT_VECTOR = [1.0, 0.0, 0.0]


class FakeEmbeddingProvider:
    """Maps known texts to fixed vectors; everything else gets DEFAULT_VECTOR."""

    def __init__(self, mapping: Optional[Dict[str, List[float]]] = None, fail_on_call: Optional[int] = None):
        self.mapping = mapping or {}
        self.fail_on_call = fail_on_call
        self.calls: List[List[str]] = []

    def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ProviderError("embedding service unavailable")
        return [list(self.mapping.get(t, DEFAULT_VECTOR)) for t in texts]


class FakeClassifier:
    def __init__(self, label: str = "on_topic", error: Optional[Exception] = None):
        self.label = label
        self.error = error
        self.calls = []

    def classify(self, query, has_history, industry):
        self.calls.append((query, has_history, industry))
        if self.error is not None:
            raise self.error
        return self.label


class FakeGenerator:
    def __init__(self, answer: str = "Generated answer.", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.calls = []

    def complete(self, system_prompt, history, user_turn):
        self.calls.append({"system": system_prompt, "history": list(history), "user": user_turn})
        if self.error is not None:
            raise self.error
        return self.answer


class FailingInsertStore(InMemoryVectorStore):
    """In-memory store whose insert fails after a number of successful rows."""

    def __init__(self, fail_after: int):
        super().__init__()
        self.fail_after = fail_after
        self.inserts = 0

    def insert(self, chunk, vector, document_name, industry, content_hash):
        if self.inserts >= self.fail_after:
            raise StoreError("insert failed: connection reset")
        self.inserts += 1
        return super().insert(chunk, vector, document_name, industry, content_hash)


def utf8_extractor(raw: bytes) -> str:
    return raw.decode("utf-8").strip()


SENTENCE = "The bank offers many services to customers. "


@pytest.fixture
def long_text() -> str:
    """2500 characters of prose with regular sentence boundaries."""
    return (SENTENCE * 57)[:2500]


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embedder(embedding_provider) -> EmbeddingService:
    return EmbeddingService(embedding_provider, batch_size=50, batch_delay_seconds=0.0)


@pytest.fixture
def pipeline(store, embedder) -> IngestionPipeline:
    return IngestionPipeline(
        store=store,
        embedder=embedder,
        chunker=TextChunker(1000, 200),
        industries=INDUSTRIES,
        extractor=utf8_extractor,
    )


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def router(classifier, embedder, store, generator) -> RetrievalRouter:
    return RetrievalRouter(
        classifier=classifier,
        embedder=embedder,
        store=store,
        generator=generator,
        catalog=TopicCatalog(),
        industries=INDUSTRIES,
        threshold=0.5,
        top_k=5,
        rng=random.Random(7),
    )
