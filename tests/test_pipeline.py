"""Tests for IngestionPipeline: dedup, overwrite, and all-or-nothing writes."""
import threading
import time

import pytest

from industry_rag.chunking import TextChunker
from industry_rag.embedding import EmbeddingService
from industry_rag.errors import StoreError, ValidationError
from industry_rag.extraction import content_hash
from industry_rag.ingestion.pipeline import (
    ALREADY_PROCESSED_MESSAGE,
    DUPLICATE_MESSAGE,
    FAILURE_MESSAGE,
    SUCCESS_MESSAGE,
    IngestionPipeline,
)
from industry_rag.store import InMemoryVectorStore

from tests.conftest import INDUSTRIES, FailingInsertStore, FakeEmbeddingProvider, utf8_extractor


def make_pipeline(store, provider=None):
    return IngestionPipeline(
        store=store,
        embedder=EmbeddingService(provider or FakeEmbeddingProvider(), batch_delay_seconds=0),
        chunker=TextChunker(1000, 200),
        industries=INDUSTRIES,
        extractor=utf8_extractor,
    )


def ingest(pipeline, raw, name="loans.txt", industry="Finance", overwrite=False):
    return pipeline.ingest(raw, industry=industry, content_hash=content_hash(raw), overwrite=overwrite,
                           document_name=name)


class TestSuccess:
    def test_stores_every_chunk(self, pipeline, store, long_text):
        result = ingest(pipeline, long_text.encode())

        assert result.success
        assert result.message == SUCCESS_MESSAGE
        assert result.skipped_reason is None
        assert result.stats.text_length == 2500
        assert result.stats.total_chunks == 3
        assert result.stats.inserted_rows == 3
        assert result.stats.avg_chunk_size == 942
        assert len(store) == 3

    def test_chunks_carry_offsets_and_hash(self, pipeline, store, long_text):
        raw = long_text.encode()
        ingest(pipeline, raw)

        chunks = store.get_document_chunks("loans.txt", "Finance")
        assert [c.index for c in chunks] == [0, 1, 2]
        assert chunks[0].start_char == 0 and chunks[-1].end_char == 2500
        assert store.list_documents()[0].content_hash == content_hash(raw)


class TestDedup:
    def test_identical_bytes_under_new_name_are_duplicates(self, pipeline, store, long_text):
        ingest(pipeline, long_text.encode(), name="a.txt")
        result = ingest(pipeline, long_text.encode(), name="b.txt")

        assert not result.success
        assert result.skipped_reason == "duplicate_hash"
        assert result.message == DUPLICATE_MESSAGE
        assert result.error is None
        assert len(store) == 3

    def test_same_name_new_content_is_already_processed(self, pipeline, store, long_text):
        ingest(pipeline, long_text.encode())
        result = ingest(pipeline, b"Updated loan policy for 2026.")

        assert not result.success
        assert result.skipped_reason == "already_processed"
        assert result.message == ALREADY_PROCESSED_MESSAGE
        assert result.stats.inserted_rows == 0
        assert len(store) == 3

    def test_same_name_in_other_industry_is_a_new_document(self, pipeline, store):
        ingest(pipeline, b"Opening hours for the branch.", name="faq.txt", industry="Finance")
        result = ingest(pipeline, b"Opening hours for the clinic.", name="faq.txt", industry="Healthcare")

        assert result.success
        assert len(store) == 2


class TestOverwrite:
    def test_replaces_existing_chunks(self, pipeline, store, long_text):
        ingest(pipeline, long_text.encode())
        result = ingest(pipeline, b"Short replacement text.", overwrite=True)

        assert result.success
        assert result.stats.inserted_rows == 1
        assert len(store) == 1
        assert store.get_document_chunks("loans.txt", "Finance")[0].content == "Short replacement text."

    def test_reingesting_identical_bytes_does_not_duplicate_rows(self, pipeline, store, long_text):
        ingest(pipeline, long_text.encode())
        result = ingest(pipeline, long_text.encode(), overwrite=True)

        assert result.success
        assert len(store) == 3


class TestFailures:
    def test_insert_failure_rolls_back_partial_rows(self, long_text):
        store = FailingInsertStore(fail_after=2)
        result = ingest(make_pipeline(store), long_text.encode())

        assert not result.success
        assert result.message == FAILURE_MESSAGE
        assert "insert failed" in result.error
        assert result.skipped_reason is None
        assert result.stats.inserted_rows == 0
        assert store.inserts == 2
        assert len(store) == 0

    def test_rollback_leaves_other_documents_untouched(self, long_text):
        store = FailingInsertStore(fail_after=3)
        pipeline = make_pipeline(store)
        assert ingest(pipeline, long_text.encode(), name="first.txt").success

        result = ingest(pipeline, b"Another document about savings accounts.", name="second.txt")

        assert not result.success
        assert len(store) == 3
        assert not store.exists_by_name("second.txt")

    def test_embedding_failure_writes_nothing(self, store, long_text):
        result = ingest(make_pipeline(store, FakeEmbeddingProvider(fail_on_call=1)), long_text.encode())

        assert not result.success
        assert "embedding service unavailable" in result.error
        assert len(store) == 0

    def test_blank_document_is_a_failure_result(self, pipeline, store):
        result = ingest(pipeline, b"   \n  ")

        assert not result.success
        assert "no extractable text" in result.error
        assert len(store) == 0

    def test_unexpected_error_rolls_back_and_propagates(self, long_text):
        class ExplodingStore(InMemoryVectorStore):
            def insert(self, chunk, vector, document_name, industry, content_hash):
                if chunk.index == 1:
                    raise RuntimeError("disk full")
                return super().insert(chunk, vector, document_name, industry, content_hash)

        store = ExplodingStore()
        with pytest.raises(RuntimeError, match="disk full"):
            ingest(make_pipeline(store), long_text.encode())
        assert len(store) == 0

    def test_failed_compensation_is_raised(self, long_text):
        class BrokenStore(FailingInsertStore):
            def delete_by_document(self, document_name, industry=None):
                raise StoreError("delete failed")

        with pytest.raises(StoreError, match="delete failed"):
            ingest(make_pipeline(BrokenStore(fail_after=1)), long_text.encode())


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"industry": "Retail"},
            {"industry": ""},
            {"document_name": "  "},
            {"content_hash": ""},
        ],
    )
    def test_rejects_bad_input(self, pipeline, kwargs):
        args = {"industry": "Finance", "content_hash": "abc", "document_name": "doc.txt"}
        args.update(kwargs)
        with pytest.raises(ValidationError):
            pipeline.ingest(b"text", **args)


def test_concurrent_ingestion_of_same_document_is_serialized(store, long_text):
    pipeline = make_pipeline(store)
    raw = long_text.encode()
    results = []
    barrier = threading.Barrier(2)

    def worker():
        barrier.wait()
        results.append(ingest(pipeline, raw))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.success for r in results) == [False, True]
    assert len(store) == 3
    assert pipeline.locks.active_keys() == 0


def test_concurrent_identical_bytes_under_different_names_store_once(store, long_text):
    def slow_extractor(raw):
        time.sleep(0.2)
        return utf8_extractor(raw)

    pipeline = IngestionPipeline(
        store=store,
        embedder=EmbeddingService(FakeEmbeddingProvider(), batch_delay_seconds=0),
        chunker=TextChunker(1000, 200),
        industries=INDUSTRIES,
        extractor=slow_extractor,
    )
    raw = long_text.encode()
    results = []
    barrier = threading.Barrier(2)

    def worker(name):
        barrier.wait()
        results.append(ingest(pipeline, raw, name=name))

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("a.txt", "b.txt")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.success for r in results) == [False, True]
    assert [r.skipped_reason for r in results if not r.success] == ["duplicate_hash"]
    assert len(store) == 3
    assert len(store.list_documents()) == 1
    assert pipeline.locks.active_keys() == 0
