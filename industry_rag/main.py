"""FastAPI application entrypoint and routes.

Exposes health, document ingestion, document listing and chat endpoints. The
service graph (one OpenAI client, the vector store, pipeline and router) is
built once at startup and handed to routes through the get_services dependency.
Sync routes run in the worker threadpool, one task per request.
"""
import logging
from collections import Counter

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from industry_rag.config import settings
from industry_rag.errors import ValidationError
from industry_rag.extraction import content_hash
from industry_rag.obs import configure_logging, init_tracing, span
from industry_rag.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentInfo,
    DocumentsResponse,
    PipelineResponse,
)
from industry_rag.services import Services, build_services

logger = logging.getLogger(__name__)

app = FastAPI(title="Industry RAG API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    """Configure logging/tracing, ensure the schema exists, and build services."""
    configure_logging()
    init_tracing()
    if settings.VECTOR_STORE.lower() == "pgvector":
        from industry_rag.db import init_db

        init_db()
    app.state.services = build_services(settings)


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services built at startup."""
    return request.app.state.services


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health")
def health():
    """Liveness probe endpoint.

    Returns:
        dict: {"status": "ok"} when the service is running.
    """
    return {"status": "ok"}


@app.post("/documents", response_model=PipelineResponse)
def ingest_document(
    file: UploadFile = File(...),
    industry: str = Form(...),
    overwrite: bool = Form(False),
    document_name: str = Form(""),
    services: Services = Depends(get_services),
):
    """Ingest one uploaded document (ingestDocument).

    Status codes:
        200: stored; 409: duplicate short-circuit; 500: pipeline failure
        (rows rolled back); 400: invalid input.
    """
    raw = file.file.read()
    name = document_name or file.filename or ""
    digest = content_hash(raw)
    with span("api.ingest", {"document": name, "industry": industry}):
        result = services.pipeline.ingest(
            raw, industry=industry, content_hash=digest, overwrite=overwrite, document_name=name
        )
    body = PipelineResponse.from_result(result)
    if result.success:
        status = 200
    elif result.skipped_reason:
        status = 409
    else:
        status = 500
    return JSONResponse(status_code=status, content=body.model_dump())


@app.get("/documents", response_model=DocumentsResponse)
def list_documents(services: Services = Depends(get_services)) -> DocumentsResponse:
    """Stored documents with chunk counts, plus chunk totals per industry."""
    records = services.store.list_documents()
    per_industry: Counter = Counter()
    for r in records:
        per_industry[r.industry] += r.chunk_count
    return DocumentsResponse(
        total_chunks=sum(r.chunk_count for r in records),
        unique_documents=len(records),
        documents=[
            DocumentInfo(name=r.name, industry=r.industry, content_hash=r.content_hash, chunk_count=r.chunk_count)
            for r in records
        ],
        industries=dict(per_industry),
    )


@app.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest, services: Services = Depends(get_services)) -> ChatResponse:
    """Answer a user question (answerQuery).

    Provider or store failures are returned as a 200 with `error` set and an
    apology answer; only invalid input produces a 400.
    """
    with span("api.chat", {"industry": req.industry}):
        result = services.router.answer(
            req.query,
            industry=req.industry,
            history=[t.model_dump() for t in req.history],
        )
    if result.error:
        logger.error("Chat request failed: %s", result.error)
    return ChatResponse.from_result(result)
