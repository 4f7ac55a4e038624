"""Error taxonomy shared by the ingestion and answering paths.

- RagError: base class for every domain failure raised by this package.
- ValidationError: missing or malformed input (empty query, unknown industry,
  invalid chunk configuration, documents that yield no text).
- ProviderError: an embedding, classification, or generation call failed.
- ExtractionError: the document parser could not turn bytes into text.
- StoreError: a VectorStore operation failed.

Duplicate documents are not errors; the ingestion pipeline reports them as a
normal PipelineResult with success=False.
"""


class RagError(Exception):
    """Base class for domain errors."""


class ValidationError(RagError, ValueError):
    """Input or configuration is missing or malformed."""


class ProviderError(RagError):
    """An external model provider call failed (network, timeout, bad payload)."""


class ExtractionError(RagError):
    """Text could not be extracted from a source document."""


class StoreError(RagError):
    """The vector store rejected or failed an operation."""
