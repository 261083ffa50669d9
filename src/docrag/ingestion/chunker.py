"""Text chunking — overlapping, token-budgeted segments of extracted text."""

from __future__ import annotations

import math
import re

from docrag.documents.models import TextChunk

# Rough characters-per-token ratio shared by every chunk budget.
APPROX_CHARS_PER_TOKEN = 4

# A paragraph / sentence break is only used as the cut point when it falls
# at or after this fraction of the candidate window.
BOUNDARY_MIN_FRACTION = 0.6

_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")


def estimate_tokens(text: str) -> int:
    """Approximate token count of *text*."""
    return math.ceil(len(text) / APPROX_CHARS_PER_TOKEN)


def normalise_text(text: str) -> str:
    """Unix line endings, no spaces before newlines, trimmed."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _TRAILING_SPACE_RE.sub("\n", text).strip()


def _find_cut(window: str) -> int:
    """Pick the cut offset inside *window*: paragraph → sentence → word → hard cut."""
    min_cut = len(window) * BOUNDARY_MIN_FRACTION

    cut = window.rfind("\n\n")
    if cut > 0 and cut >= min_cut:
        return cut

    cut = window.rfind(". ")
    if cut > 0 and cut >= min_cut:
        return cut + 1  # keep the period with its sentence

    cut = window.rfind(" ")
    if cut > 0:
        return cut

    return len(window)


def chunk_text(
    text: str,
    max_tokens: int = 1000,
    overlap_tokens: int = 100,
) -> list[TextChunk]:
    """Split *text* into overlapping chunks of at most *max_tokens*.

    Parameters
    ----------
    text:
        Extracted document text.
    max_tokens:
        Budget per chunk, converted to ``max_tokens * 4`` characters.
    overlap_tokens:
        How much of the end of one chunk is repeated at the start of the
        next, converted to characters the same way.

    Returns
    -------
    list[TextChunk]
        Chunks with contiguous indices from 0.  Empty or whitespace-only
        input yields an empty list.
    """
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")
    if overlap_tokens < 0:
        raise ValueError(f"overlap_tokens must be >= 0, got {overlap_tokens}")

    if not text or not text.strip():
        return []

    max_chars = max_tokens * APPROX_CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * APPROX_CHARS_PER_TOKEN
    clean = normalise_text(text)

    chunks: list[TextChunk] = []
    start = 0
    while start < len(clean):
        end = min(start + max_chars, len(clean))
        window = clean[start:end]
        at_end = end >= len(clean)
        cut = len(window) if at_end else _find_cut(window)

        piece = window[:cut].strip()
        if piece:
            chunks.append(TextChunk(chunk_index=len(chunks), content=piece))

        if at_end:
            break

        next_start = start + cut - overlap_chars
        # Overlap larger than what was emitted would stall the scan.
        start = next_start if next_start > start else start + cut

    return chunks
