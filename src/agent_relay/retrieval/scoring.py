"""Keyword coverage scoring and snippet extraction."""

from __future__ import annotations

from collections.abc import Iterable

from agent_relay.plugins.models import IndexDocument, SearchSnippet

MIN_TERM_LENGTH = 3
SNIPPET_LEAD_CHARS = 50
SNIPPET_TAIL_CHARS = 150
SNIPPET_HEAD_CHARS = 200
ELLIPSIS = "..."
DEFAULT_MAX_RESULTS = 5

FALLBACK_SNIPPETS: tuple[SearchSnippet, ...] = (
    SearchSnippet(
        source="FAQ.md",
        text="Answers are drawn from the indexed help center and product documentation.",
        score=0.5,
        metadata={"fallback": True},
    ),
    SearchSnippet(
        source="Runbooks.md",
        text="If the documentation does not cover a question, escalate it to a human agent.",
        score=0.5,
        metadata={"fallback": True},
    ),
)


def query_terms(query: str) -> list[str]:
    """Lower-cased whitespace tokens, dropping tokens of two characters or fewer."""
    return [term for term in query.lower().split() if len(term) >= MIN_TERM_LENGTH]


def coverage_score(terms: list[str], text: str) -> float:
    """Fraction of ``terms`` contained (as substrings) in ``text``."""
    if not terms:
        return 0.0
    lowered = text.lower()
    matched = sum(1 for term in terms if term in lowered)
    return matched / len(terms)


def extract_snippet(text: str, query: str) -> str:
    """Window around the first verbatim query match, else the document head."""
    index = text.lower().find(query.lower())
    if index == -1:
        head = text[:SNIPPET_HEAD_CHARS]
        return head + ELLIPSIS if len(text) > SNIPPET_HEAD_CHARS else head

    start = max(0, index - SNIPPET_LEAD_CHARS)
    end = min(len(text), index + len(query) + SNIPPET_TAIL_CHARS)
    snippet = text[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet


def resolve_max_results(max_results: int) -> int:
    """Non-positive limits mean "use the default"."""
    return max_results if max_results > 0 else DEFAULT_MAX_RESULTS


def rank_documents(
    documents: Iterable[IndexDocument],
    query: str,
    *,
    max_results: int,
    rank_before_truncate: bool = False,
) -> list[SearchSnippet]:
    """Score documents against ``query`` and return at most ``max_results`` snippets.

    By default results are capped while scanning, in index order, and only the
    kept results are sorted by score; a later, better match can therefore be
    left out. ``rank_before_truncate=True`` scores every document first.
    Returns an empty list when nothing matches; callers decide on fallbacks.
    """
    terms = query_terms(query)
    limit = resolve_max_results(max_results)
    results: list[SearchSnippet] = []
    for document in documents:
        score = coverage_score(terms, document.text)
        if score <= 0.0:
            continue
        results.append(
            SearchSnippet(
                source=document.source,
                text=extract_snippet(document.text, query),
                score=round(score, 4),
                metadata=dict(document.metadata) or None,
            )
        )
        if not rank_before_truncate and len(results) >= limit:
            break

    results.sort(key=lambda item: item.score, reverse=True)
    return results[:limit]


def fallback_snippets() -> list[SearchSnippet]:
    return [snippet.model_copy(deep=True) for snippet in FALLBACK_SNIPPETS]
