"""In-memory keyword retrieval backend."""

from __future__ import annotations

import logging
from collections import deque
from datetime import UTC, datetime
from pathlib import Path

from agent_relay.plugins.base import PluginResult, ok
from agent_relay.plugins.latency import simulate_latency
from agent_relay.plugins.models import (
    IndexDocument,
    IndexStats,
    PluginHealth,
    PluginMetadata,
    RetrievalStatus,
    SearchSnippet,
)
from agent_relay.retrieval.chunking import load_markdown_corpus
from agent_relay.retrieval.scoring import fallback_snippets, rank_documents, resolve_max_results

logger = logging.getLogger(__name__)

SEARCH_HISTORY_LIMIT = 1000


class InMemoryRetrievalPlugin:
    """Keeps ``IndexDocument`` records in a list and scores them per query."""

    def __init__(
        self,
        *,
        corpus_dir: Path | None = None,
        latency_ms: tuple[int, int] = (10, 50),
        rank_before_truncate: bool = False,
    ) -> None:
        self.metadata = PluginMetadata(
            name="retrieval-memory",
            version="1.0.0",
            description="In-memory keyword search over markdown sections",
            capabilities=["search", "index", "local-files"],
        )
        self.corpus_dir = corpus_dir
        self.latency_ms = latency_ms
        self.rank_before_truncate = rank_before_truncate
        self._documents: list[IndexDocument] = []
        self.search_history: deque[dict[str, object]] = deque(maxlen=SEARCH_HISTORY_LIMIT)

    def initialize(self) -> int:
        """Index ``corpus_dir`` when configured; returns the number of documents added."""
        if self.corpus_dir is None:
            return 0
        documents = load_markdown_corpus(self.corpus_dir)
        self._documents.extend(documents)
        logger.info(
            "retrieval_init event=corpus_indexed corpus_dir=%s documents=%d",
            self.corpus_dir,
            len(documents),
        )
        return len(documents)

    async def search(self, query: str, max_results: int = 5) -> PluginResult[list[SearchSnippet]]:
        await simulate_latency(*self.latency_ms)

        snippets = rank_documents(
            self._documents,
            query,
            max_results=max_results,
            rank_before_truncate=self.rank_before_truncate,
        )
        used_fallback = not snippets
        if used_fallback:
            snippets = fallback_snippets()[: resolve_max_results(max_results)]

        self.search_history.append(
            {"query": query, "results": len(snippets), "timestamp": datetime.now(UTC)}
        )
        logger.info(
            "retrieval_search event=completed results=%d indexed_docs=%d fallback=%s",
            len(snippets),
            len(self._documents),
            used_fallback,
        )
        return ok(
            snippets,
            total_indexed=len(self._documents),
            search_count=len(self.search_history),
            fallback=used_fallback,
        )

    async def index(
        self, documents: list[IndexDocument], replace: bool = False
    ) -> PluginResult[IndexStats]:
        await simulate_latency(*self.latency_ms)

        if replace:
            self._documents = []
        before = len(self._documents)
        self._documents.extend(documents)
        logger.info(
            "retrieval_index event=indexed added=%d before=%d after=%d replace=%s",
            len(documents),
            before,
            len(self._documents),
            replace,
        )
        return ok(IndexStats(indexed=len(documents), total=len(self._documents)))

    async def status(self) -> PluginResult[RetrievalStatus]:
        return ok(
            RetrievalStatus(
                indexed=bool(self._documents),
                doc_count=len(self._documents),
                engine="memory-keyword",
            )
        )

    async def health_check(self) -> PluginHealth:
        return PluginHealth(
            healthy=True,
            status="healthy",
            message=f"{len(self._documents)} documents indexed",
        )
