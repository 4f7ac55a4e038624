"""Batch ingestor for a directory of documents.

Scans a directory (non-recursive) for .pdf, .txt and .md files, computes a
SHA-256 content hash for each, classifies the industry from the extracted text
when --industry is not given, and runs the ingestion pipeline per file.
Per-file failures are collected and reported; they do not stop the batch.

Usage:
  python -m industry_rag.ingestion.ingest_directory --path ./documents [--industry Finance] [--overwrite]

Configuration:
- Database / store backend: industry_rag.config.settings (DATABASE_URL, VECTOR_STORE)
- Embeddings: settings.OPENAI_EMBEDDING_MODEL
- Chunk params: settings.CHUNK_SIZE, CHUNK_OVERLAP
"""
import argparse
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from industry_rag.errors import RagError
from industry_rag.extraction import content_hash, extract_text
from industry_rag.ingestion.pipeline import DUPLICATE_MESSAGE

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".pdf", ".txt", ".md"}


@dataclass
class BatchSummary:
    total_files: int = 0
    processed: List[Dict] = field(default_factory=list)
    skipped: List[Dict] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    industries: Counter = field(default_factory=Counter)

    @property
    def total_chunks(self) -> int:
        return sum(p["chunks"] for p in self.processed)

    def message(self) -> str:
        industry_summary = ", ".join(f"{k} ({v})" for k, v in sorted(self.industries.items()))
        msg = f"Processed {len(self.processed)} of {self.total_files} documents"
        return f"{msg}: {industry_summary}" if industry_summary else msg


def find_documents(directory: Path) -> List[Path]:
    """List ingestible files in directory, sorted by name, skipping hidden files."""
    if not directory.is_dir():
        raise NotADirectoryError(str(directory))
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and not p.name.startswith(".") and p.suffix.lower() in SUPPORTED_SUFFIXES
    )


def ingest_directory(
    directory: Path,
    pipeline,
    classify: Optional[Callable[[str], str]] = None,
    industry: Optional[str] = None,
    overwrite: bool = False,
) -> BatchSummary:
    """Ingest every supported document in a directory.

    Args:
        directory: Folder to scan.
        pipeline: An IngestionPipeline.
        classify: text -> industry, used when industry is None.
        industry: Fixed industry for every file.
        overwrite: Replace documents that were already ingested.

    Returns:
        BatchSummary: processed, skipped and failed files with counts per industry.
    """
    if industry is None and classify is None:
        raise ValueError("either industry or classify must be provided")

    files = find_documents(directory)
    summary = BatchSummary(total_files=len(files))
    logger.info("Found %d documents to process in %s", len(files), directory)

    for path in files:
        try:
            raw = path.read_bytes()
            digest = content_hash(raw)
            # Known bytes skip extraction and the classifier call entirely.
            if not overwrite and pipeline.store.exists_by_hash(digest):
                summary.skipped.append({"file": path.name, "reason": DUPLICATE_MESSAGE})
                logger.info("Skipped %s: %s", path.name, DUPLICATE_MESSAGE)
                continue
            doc_industry = industry
            if doc_industry is None:
                doc_industry = classify(extract_text(raw))
            result = pipeline.ingest(
                raw, industry=doc_industry, content_hash=digest, overwrite=overwrite, document_name=path.name
            )
        except (OSError, RagError) as exc:
            logger.error("Error processing %s: %s", path.name, exc)
            summary.errors.append({"file": path.name, "error": str(exc)})
            continue

        if result.success:
            summary.processed.append(
                {"file": path.name, "industry": doc_industry, "chunks": result.stats.total_chunks}
            )
            summary.industries[doc_industry] += 1
            logger.info("Processed %s -> %d chunks (%s)", path.name, result.stats.total_chunks, doc_industry)
        elif result.skipped_reason:
            summary.skipped.append({"file": path.name, "reason": result.message})
            logger.info("Skipped %s: %s", path.name, result.message)
        else:
            summary.errors.append({"file": path.name, "error": result.error or result.message})
            logger.error("Failed %s: %s", path.name, result.error)

    logger.info("%s (%d chunks)", summary.message(), summary.total_chunks)
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Ingest a directory of PDF/text documents.")
    parser.add_argument("--path", required=True, help="Directory containing documents")
    parser.add_argument("--industry", default=None, help="Industry for all files (default: classify each file)")
    parser.add_argument("--overwrite", action="store_true", help="Re-ingest documents that already exist")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args(argv)

    from industry_rag.config import settings
    from industry_rag.obs import configure_logging, init_tracing
    from industry_rag.services import build_services

    configure_logging(args.log_level)
    init_tracing()
    if settings.VECTOR_STORE.lower() == "pgvector":
        from industry_rag.db import init_db

        init_db()

    services = build_services(settings)
    summary = ingest_directory(
        Path(args.path),
        services.pipeline,
        classify=services.document_classifier.classify,
        industry=args.industry,
        overwrite=args.overwrite,
    )
    print(f"[INGEST] {summary.message()} -> {summary.total_chunks} chunks")
    return 1 if summary.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
