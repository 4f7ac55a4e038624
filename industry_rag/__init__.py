"""Industry-scoped retrieval-augmented generation service.

Submodules overview:
- main: FastAPI application bootstrap and routes (ingestDocument, answerQuery).
- services: explicit construction of the provider client and service graph.
- config: Application settings and environment variable loading.
- errors: Error taxonomy (validation, provider, extraction, store).
- domain: Plain dataclasses and enums shared across the pipelines.
- chunking: Boundary-aware overlapping text chunker.
- embedding: Batched embedding service and the OpenAI provider.
- extraction: PDF/text extraction, cleaning and content hashing.
- db / models: SQLAlchemy engine, sessions and the pgvector chunk table.
- store: VectorStore contract with pgvector and in-memory implementations.
- locks: Per-document locks serializing same-key ingestion.
- generation / prompts: Chat-completion generator and classifiers, prompt assembly.
- router: Query intent classification and conditional retrieval.
- catalog: Per-industry topic catalog.
- ingestion: Ingestion pipeline and the directory ingestion CLI.
- obs: Logging setup and OpenTelemetry spans.
"""
