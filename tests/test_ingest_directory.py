"""Tests for the directory ingestion CLI helpers."""
import pytest

from industry_rag.ingestion.ingest_directory import find_documents, ingest_directory


@pytest.fixture
def docs(tmp_path):
    (tmp_path / "b_rates.txt").write_text("Savings rates are reviewed monthly.", encoding="utf-8")
    (tmp_path / "a_courses.md").write_text("# Courses\n\nRegistration opens in August.", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / ".hidden.txt").write_text("ignored", encoding="utf-8")
    (tmp_path / "empty.txt").write_text("  ", encoding="utf-8")
    return tmp_path


def test_find_documents_filters_and_sorts(docs):
    assert [p.name for p in find_documents(docs)] == ["a_courses.md", "b_rates.txt", "empty.txt"]


def test_find_documents_requires_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        find_documents(tmp_path / "missing")


def test_ingest_with_classifier(docs, pipeline, store):
    def classify(text):
        return "Education" if "Registration" in text else "Finance"

    summary = ingest_directory(docs, pipeline, classify=classify)

    assert summary.total_files == 3
    assert [p["file"] for p in summary.processed] == ["a_courses.md", "b_rates.txt"]
    assert summary.industries == {"Education": 1, "Finance": 1}
    assert [e["file"] for e in summary.errors] == ["empty.txt"]
    assert summary.total_chunks == 2
    assert summary.message() == "Processed 2 of 3 documents: Education (1), Finance (1)"
    assert store.exists_by_name("a_courses.md", "Education")


def test_rerun_skips_already_ingested(docs, pipeline):
    ingest_directory(docs, pipeline, industry="Finance")
    summary = ingest_directory(docs, pipeline, industry="Finance")

    assert summary.processed == []
    assert [s["file"] for s in summary.skipped] == ["a_courses.md", "b_rates.txt"]


def test_requires_industry_or_classifier(docs, pipeline):
    with pytest.raises(ValueError):
        ingest_directory(docs, pipeline)


def test_known_bytes_skip_classifier(docs, pipeline):
    calls = []

    def classify(text):
        calls.append(text)
        return "Finance"

    ingest_directory(docs, pipeline, classify=classify)
    calls.clear()
    summary = ingest_directory(docs, pipeline, classify=classify)

    assert [s["file"] for s in summary.skipped] == ["a_courses.md", "b_rates.txt"]
    # only the blank file, which never got stored, is classified again
    assert calls == [""]


def test_overwrite_reclassifies_known_bytes(docs, pipeline):
    calls = []

    def classify(text):
        calls.append(text)
        return "Finance"

    ingest_directory(docs, pipeline, classify=classify)
    calls.clear()
    summary = ingest_directory(docs, pipeline, classify=classify, overwrite=True)

    assert len(calls) == 3
    assert [p["file"] for p in summary.processed] == ["a_courses.md", "b_rates.txt"]
