"""Document text extraction and content hashing.

Provides:
- content_hash: SHA-256 hex digest of raw document bytes (byte-identical dedup key).
- clean_text: whitespace normalization applied to all extracted text.
- extract_text: PDF bytes via PyMuPDF, anything else decoded as UTF-8 text.
"""
import hashlib
import logging
import re

import fitz  # PyMuPDF

from industry_rag.errors import ExtractionError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


def content_hash(raw: bytes) -> str:
    """Return the SHA-256 hex digest of raw document bytes."""
    return hashlib.sha256(raw).hexdigest()


def clean_text(text: str) -> str:
    """Normalize whitespace in extracted text.

    Collapses runs of non-newline whitespace to one space, limits blank lines
    to one, strips every line and the text as a whole.
    """
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return text.strip()


def _pdf_to_text(raw: bytes) -> str:
    try:
        with fitz.open(stream=raw, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except (fitz.FileDataError, RuntimeError, ValueError) as exc:
        raise ExtractionError(f"Failed to parse PDF: {exc}") from exc
    logger.debug("Extracted %d pages from PDF", len(pages))
    return "\n".join(pages)


def extract_text(raw: bytes) -> str:
    """Extract clean plain text from document bytes.

    Args:
        raw: Document bytes. PDFs are detected by their magic header.

    Returns:
        str: Cleaned text, possibly empty.

    Raises:
        ExtractionError: If the bytes cannot be parsed or decoded.
    """
    if raw.startswith(PDF_MAGIC):
        text = _pdf_to_text(raw)
    else:
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(f"Document is neither a PDF nor UTF-8 text: {exc}") from exc
    return clean_text(text)
