"""Explicit construction of the service graph.

build_services creates the single OpenAI client handle for the process and
injects it into every provider adapter, then wires the store, lock backend,
ingestion pipeline and retrieval router from settings. The API builds it once
at startup; the CLI builds it once in main().
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional

import redis
from openai import OpenAI

from industry_rag.catalog import TopicCatalog
from industry_rag.chunking import TextChunker
from industry_rag.config import Settings
from industry_rag.embedding import EmbeddingService, OpenAIEmbeddingProvider
from industry_rag.generation import OpenAIDocumentClassifier, OpenAIGenerator, OpenAIQueryClassifier
from industry_rag.ingestion.pipeline import IngestionPipeline
from industry_rag.locks import KeyedLock, RedisKeyedLock
from industry_rag.router import RetrievalRouter
from industry_rag.store import InMemoryVectorStore, PgVectorStore, VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: VectorStore
    pipeline: IngestionPipeline
    router: RetrievalRouter
    document_classifier: OpenAIDocumentClassifier


def build_openai_client(settings: Settings) -> OpenAI:
    """Create the process-wide OpenAI client. SDK retries are off; timeouts abort the caller."""
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set. Set it in .env before ingesting or answering.")
    return OpenAI(
        api_key=settings.OPENAI_API_KEY or "missing",
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
    )


def build_store(settings: Settings) -> VectorStore:
    backend = settings.VECTOR_STORE.lower()
    if backend == "memory":
        return InMemoryVectorStore()
    if backend == "pgvector":
        return PgVectorStore()
    raise ValueError(f"Unknown VECTOR_STORE backend: {settings.VECTOR_STORE}")


def build_locks(settings: Settings):
    backend = settings.LOCK_BACKEND.lower()
    if backend == "local":
        return KeyedLock()
    if backend == "redis":
        return RedisKeyedLock(redis.from_url(settings.REDIS_URL), timeout_seconds=settings.LOCK_TIMEOUT_SECONDS)
    raise ValueError(f"Unknown LOCK_BACKEND: {settings.LOCK_BACKEND}")


def build_services(
    settings: Settings,
    client: Optional[OpenAI] = None,
    store: Optional[VectorStore] = None,
    rng: Optional[random.Random] = None,
) -> Services:
    client = client or build_openai_client(settings)
    store = store if store is not None else build_store(settings)
    industries = settings.industry_list

    embedder = EmbeddingService(
        OpenAIEmbeddingProvider(client, settings.OPENAI_EMBEDDING_MODEL),
        batch_size=settings.EMBEDDING_BATCH_SIZE,
        batch_delay_seconds=settings.EMBEDDING_BATCH_DELAY_SECONDS,
    )
    catalog = TopicCatalog.from_file(settings.TOPIC_CATALOG_PATH) if settings.TOPIC_CATALOG_PATH else TopicCatalog()

    pipeline = IngestionPipeline(
        store=store,
        embedder=embedder,
        chunker=TextChunker(settings.CHUNK_SIZE, settings.CHUNK_OVERLAP),
        industries=industries,
        locks=build_locks(settings),
    )
    router = RetrievalRouter(
        classifier=OpenAIQueryClassifier(client, settings.OPENAI_CLASSIFIER_MODEL, industries),
        embedder=embedder,
        store=store,
        generator=OpenAIGenerator(client, settings.OPENAI_MODEL, max_tokens=settings.MAX_OUTPUT_TOKENS),
        catalog=catalog,
        industries=industries,
        threshold=settings.SIMILARITY_THRESHOLD,
        top_k=settings.TOP_K,
        topic_sample_size=settings.TOPIC_SAMPLE_SIZE,
        history_max_turns=settings.HISTORY_MAX_TURNS,
        rng=rng,
    )
    document_classifier = OpenAIDocumentClassifier(
        client, settings.OPENAI_CLASSIFIER_MODEL, industries, settings.DEFAULT_INDUSTRY
    )
    logger.info(
        "Services ready: store=%s, locks=%s, industries=%s",
        type(store).__name__, settings.LOCK_BACKEND, ", ".join(industries),
    )
    return Services(
        settings=settings,
        store=store,
        pipeline=pipeline,
        router=router,
        document_classifier=document_classifier,
    )
