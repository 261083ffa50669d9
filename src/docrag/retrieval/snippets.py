"""Query-centred snippets shown next to each citation."""

from __future__ import annotations

ELLIPSIS = "…"
MAX_QUERY_TERMS = 5


def query_terms(query: str, limit: int = MAX_QUERY_TERMS) -> list[str]:
    """Up to *limit* lowercase whitespace-separated terms of *query*."""
    return query.lower().split()[:limit]


def _leading(text: str, radius: int) -> str:
    if len(text) > radius * 2:
        return text[: radius * 2] + ELLIPSIS
    return text


def make_snippet(text: str, query: str, radius: int = 220) -> str:
    """Cut a window of *radius* characters either side of the first query hit.

    The result is always a contiguous substring of *text*, with
    :data:`ELLIPSIS` added on each side that was truncated.  Without a hit
    (or without any query terms) the first ``2 * radius`` characters are
    returned.
    """
    if not text:
        return ""

    terms = query_terms(query)
    if not terms:
        return _leading(text, radius)

    hay = text.lower()
    idx, term = -1, ""
    for t in terms:
        i = hay.find(t)
        if i >= 0:
            idx, term = i, t
            break

    if idx < 0:
        return _leading(text, radius)

    start = max(0, idx - radius)
    end = min(len(text), idx + len(term) + radius)
    # Keep the window within 2 * radius even for long terms.
    end = min(end, start + radius * 2)
    snippet = text[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet
