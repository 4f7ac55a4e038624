"""API tests with the service graph replaced by in-memory fakes."""
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from industry_rag.config import settings
from industry_rag.errors import ProviderError
from industry_rag.main import app, get_services
from industry_rag.services import Services


@pytest.fixture
def services(store, pipeline, router):
    return Services(
        settings=settings,
        store=store,
        pipeline=pipeline,
        router=router,
        document_classifier=MagicMock(),
    )


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, content, filename="loans.txt", **form):
    data = {"industry": "Finance"}
    data.update(form)
    return client.post("/documents", files={"file": (filename, content, "text/plain")}, data=data)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


class TestDocuments:
    def test_ingest_success(self, client, long_text):
        res = upload(client, long_text.encode())

        assert res.status_code == 200
        body = res.json()
        assert body["success"] is True
        assert body["document_name"] == "loans.txt"
        assert body["stats"]["total_chunks"] == 3
        assert body["stats"]["inserted_rows"] == 3
        assert body["skipped_reason"] is None

    def test_duplicate_is_409(self, client, long_text):
        upload(client, long_text.encode())
        res = upload(client, long_text.encode(), filename="copy.txt")

        assert res.status_code == 409
        assert res.json()["skipped_reason"] == "duplicate_hash"

    def test_overwrite_and_explicit_name(self, client, store):
        upload(client, b"Old rates.", document_name="rates")
        res = upload(client, b"New rates apply from June.", document_name="rates", overwrite="true")

        assert res.status_code == 200
        assert store.get_document_chunks("rates", "Finance")[0].content == "New rates apply from June."

    def test_failure_is_500(self, client, store):
        res = upload(client, b"   ")

        assert res.status_code == 500
        body = res.json()
        assert body["success"] is False
        assert "no extractable text" in body["error"]
        assert len(store) == 0

    def test_unsupported_industry_is_400(self, client):
        res = upload(client, b"Store hours.", industry="Retail")

        assert res.status_code == 400
        assert "unsupported industry" in res.json()["detail"]

    def test_list_documents(self, client, long_text):
        upload(client, long_text.encode())
        upload(client, b"Clinic opening hours.", filename="clinic.txt", industry="Healthcare")

        body = client.get("/documents").json()

        assert body["total_chunks"] == 4
        assert body["unique_documents"] == 2
        assert body["industries"] == {"Finance": 3, "Healthcare": 1}
        assert {d["name"] for d in body["documents"]} == {"loans.txt", "clinic.txt"}


class TestChat:
    def test_on_topic_without_documents(self, client):
        res = client.post("/chat", json={"query": "How do I open an account?", "industry": "Finance"})

        assert res.status_code == 200
        body = res.json()
        assert body["classification"] == "on_topic"
        assert body["confidence"] == "low"
        assert body["sources"] == []
        assert body["chunks_found"] == 0
        assert body["error"] is None

    def test_grounded_answer(self, client, long_text):
        upload(client, long_text.encode())

        body = client.post("/chat", json={"query": "What does the bank offer?", "industry": "Finance"}).json()

        assert body["answer"] == "Generated answer."
        assert body["chunks_found"] == 3
        assert body["confidence"] == "high"
        assert body["sources"][0] == "loans.txt (Chunk 0, Similarity: 100.0%)"

    def test_topics(self, client, classifier):
        classifier.label = "topics_inquiry"

        body = client.post("/chat", json={"query": "What can you do?", "industry": "Education"}).json()

        assert body["classification"] == "topics_inquiry"
        assert len(body["topics"]) == 3

    def test_provider_failure_reported_in_body(self, client, generator, long_text):
        upload(client, long_text.encode())
        generator.error = ProviderError("upstream timeout")

        res = client.post("/chat", json={"query": "What does the bank offer?", "industry": "Finance"})

        assert res.status_code == 200
        assert res.json()["error"] == "upstream timeout"

    def test_unsupported_industry_is_400(self, client):
        res = client.post("/chat", json={"query": "Hello", "industry": "Retail"})
        assert res.status_code == 400

    @pytest.mark.parametrize(
        "payload",
        [
            {"query": "", "industry": "Finance"},
            {"industry": "Finance"},
            {"query": "Hi", "industry": "Finance", "history": [{"role": "system", "content": "x"}]},
        ],
    )
    def test_malformed_request_is_rejected(self, client, payload):
        assert client.post("/chat", json=payload).status_code == 422
