"""Keyword retrieval: markdown chunking, coverage scoring and snippets."""

from agent_relay.retrieval.chunking import chunk_markdown, documents_from_text, load_markdown_corpus
from agent_relay.retrieval.scoring import (
    DEFAULT_MAX_RESULTS,
    FALLBACK_SNIPPETS,
    coverage_score,
    extract_snippet,
    fallback_snippets,
    query_terms,
    rank_documents,
    resolve_max_results,
)

__all__ = [
    "DEFAULT_MAX_RESULTS",
    "FALLBACK_SNIPPETS",
    "chunk_markdown",
    "coverage_score",
    "documents_from_text",
    "extract_snippet",
    "fallback_snippets",
    "load_markdown_corpus",
    "query_terms",
    "rank_documents",
    "resolve_max_results",
]
