"""Embedding utilities wrapping OpenAI's embeddings API.

Provides:
- EmbeddingProvider: protocol for anything that turns a batch of texts into vectors.
- OpenAIEmbeddingProvider: provider backed by an injected OpenAI client.
- EmbeddingService: batching, pacing and validation on top of a provider. The
  same service (and therefore the same model) embeds both document chunks and
  queries so their vectors are comparable.

No call is retried here; a failed batch aborts the whole call with ProviderError.
"""
import logging
import time
from typing import Callable, List, Protocol

from openai import OpenAI, OpenAIError

from industry_rag.errors import ProviderError

logger = logging.getLogger(__name__)

Vector = List[float]


class EmbeddingProvider(Protocol):
    def embed(self, texts: List[str]) -> List[Vector]:
        ...


class OpenAIEmbeddingProvider:
    """Embed texts with the configured OpenAI embedding model."""

    def __init__(self, client: OpenAI, model: str):
        self._client = client
        self.model = model

    def embed(self, texts: List[str]) -> List[Vector]:
        """Embed a batch of texts in a single request.

        Args:
            texts: Input strings.

        Returns:
            List[Vector]: One embedding per input, in input order.

        Raises:
            ProviderError: If the OpenAI request fails or times out.
        """
        try:
            resp = self._client.embeddings.create(model=self.model, input=texts)
        except OpenAIError as exc:
            raise ProviderError(f"Failed to generate embeddings: {exc}") from exc
        # The API returns items tagged with their input index
        data = sorted(resp.data, key=lambda d: d.index)
        return [d.embedding for d in data]


class EmbeddingService:
    """Batch texts through an EmbeddingProvider with pacing between batches.

    Args:
        provider: The embedding backend.
        batch_size: Maximum texts per provider request.
        batch_delay_seconds: Pause between successive batches of one call.
        sleep: Injectable sleep function (tests pass a no-op).
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = 50,
        batch_delay_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    def embed(self, texts: List[str]) -> List[Vector]:
        """Embed texts in order, batch by batch.

        Returns:
            List[Vector]: One vector per input text, all of the same dimension.

        Raises:
            ProviderError: If any batch fails or returns a malformed result; no
                partial vector set is ever returned.
        """
        if not texts:
            return []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        vectors: List[Vector] = []
        for b, i in enumerate(range(0, len(texts), self.batch_size), start=1):
            batch = texts[i:i + self.batch_size]
            logger.debug("Embedding batch %d/%d (%d texts)", b, total_batches, len(batch))
            out = self.provider.embed(batch)
            if len(out) != len(batch):
                raise ProviderError(
                    f"Embedding provider returned {len(out)} vectors for {len(batch)} inputs"
                )
            vectors.extend(out)
            if b < total_batches and self.batch_delay_seconds > 0:
                self._sleep(self.batch_delay_seconds)

        dims = {len(v) for v in vectors}
        if len(dims) != 1 or 0 in dims:
            raise ProviderError(f"Inconsistent embedding dimensions: {sorted(dims)}")
        return vectors

    def embed_one(self, text: str) -> Vector:
        """Embed a single query string through the same path as document chunks."""
        return self.embed([text])[0]
