"""Boundary-aware character chunking with overlap.

Provides:
- chunk_text: split text into overlapping Chunk objects, snapping window edges
  back to a sentence end, newline, or space found in the last 20% of a window
- TextChunker: chunk_text bound to a validated (chunk_size, overlap) pair
- chunk_stats: size statistics over a list of chunks

Chunk offsets always describe the whitespace-trimmed content, so
text[chunk.start_char:chunk.end_char] == chunk.content.
"""
from dataclasses import dataclass
from typing import List, Optional

from industry_rag.domain import Chunk
from industry_rag.errors import ValidationError

# Fraction of a window, measured from its start, after which boundaries are searched.
BOUNDARY_SEARCH_FROM = 0.8


@dataclass(frozen=True)
class ChunkStats:
    total_chunks: int
    total_characters: int
    avg_chunk_size: int
    min_chunk_size: int
    max_chunk_size: int


def validate_chunk_config(chunk_size: int, overlap: int) -> None:
    """Reject chunk configurations that cannot make forward progress.

    Raises:
        ValidationError: If chunk_size is not positive, overlap is negative, or
            overlap >= chunk_size (non-positive step).
    """
    if chunk_size <= 0:
        raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValidationError(f"overlap must be non-negative, got {overlap}")
    if overlap >= chunk_size:
        raise ValidationError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def _boundary_cut(window: str) -> int:
    """Return the length to keep from window, preferring a readable break.

    Looks only at the last 20% of the window, in order: sentence end (". ",
    cut after the period), newline, space. Falls back to the full window.
    """
    search_start = int(len(window) * BOUNDARY_SEARCH_FROM)
    tail = window[search_start:]

    pos = tail.rfind(". ")
    if pos != -1:
        return search_start + pos + 1

    for sep in ("\n", " "):
        pos = tail.rfind(sep)
        if pos != -1:
            cut = search_start + pos
            # never snap to an empty window
            return cut if cut > 0 else len(window)
    return len(window)


def _make_chunk(text: str, start: int, end: int, index: int) -> Optional[Chunk]:
    segment = text[start:end]
    content = segment.strip()
    if not content:
        return None
    begin = start + (len(segment) - len(segment.lstrip()))
    return Chunk(
        content=content,
        index=index,
        start_char=begin,
        end_char=begin + len(content),
        char_count=len(content),
    )


def chunk_text(text: str, chunk_size: int, overlap: int) -> List[Chunk]:
    """Split text into ordered, overlapping, boundary-aware chunks.

    Args:
        text: Input text (typically already cleaned by extraction).
        chunk_size: Maximum window size in characters.
        overlap: Characters shared by consecutive windows before snapping.

    Returns:
        List[Chunk]: Chunks ordered by index with increasing start_char. Empty
            or whitespace-only text yields an empty list.

    Raises:
        ValidationError: On an invalid (chunk_size, overlap) pair.
    """
    validate_chunk_config(chunk_size, overlap)
    if not text:
        return []

    n = len(text)
    if n <= chunk_size:
        single = _make_chunk(text, 0, n, 0)
        return [single] if single is not None else []

    step = chunk_size - overlap
    chunks: List[Chunk] = []
    start = 0
    while start < n:
        raw_end = min(start + chunk_size, n)
        end = raw_end
        if raw_end < n:
            end = start + _boundary_cut(text[start:raw_end])

        chunk = _make_chunk(text, start, end, len(chunks))
        if chunk is not None and (not chunks or chunk.start_char > chunks[-1].start_char):
            chunks.append(chunk)

        if raw_end >= n:
            break
        # Resume no later than the last character of the chunk just cut, so a
        # window shortened by snapping still overlaps the next one.
        resume = end if chunk is None else chunk.end_char - 1
        start = max(start + 1, min(start + step, resume))
    return chunks


class TextChunker:
    """chunk_text with a fixed configuration validated at construction time."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200):
        validate_chunk_config(chunk_size, overlap)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> List[Chunk]:
        return chunk_text(text, self.chunk_size, self.overlap)


def chunk_stats(chunks: List[Chunk]) -> ChunkStats:
    """Summarize chunk sizes; all-zero stats for an empty list."""
    if not chunks:
        return ChunkStats(0, 0, 0, 0, 0)
    sizes = [c.char_count for c in chunks]
    total = sum(sizes)
    return ChunkStats(
        total_chunks=len(chunks),
        total_characters=total,
        avg_chunk_size=round(total / len(chunks)),
        min_chunk_size=min(sizes),
        max_chunk_size=max(sizes),
    )
