# =============================================================================
# Semantic Strategy — Nearest-Neighbour Search over Ledger Summaries
# =============================================================================
#
# Used for descriptive questions ("fale sobre despesas de combustível")
# that no single SQL aggregate answers well.
#
#   1. WARM    — EmbeddingCache.rebuild(force=False); no-op when fresh
#   2. EMPTY?  — no ledger rows yet → fixed "not enough data" message
#   3. EMBED   — one embedding call for the question
#   4. RANK    — cosine similarity against every cached vector, top-k
#
# Returns either the top-k summary sentences or the fixed message; the
# orchestrator treats the message as the final answer.
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from agromark.services.embedder import Embedder
from agromark.services.embedding_cache import CacheSnapshot, EmbeddingCache

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_MESSAGE = (
    "Ainda não há dados suficientes para realizar uma busca. "
    "Por favor, adicione alguns lançamentos primeiro."
)


class SemanticStrategy:
    """Answers descriptive questions from the embedding cache."""

    def __init__(
        self,
        cache: EmbeddingCache,
        embedder: Embedder,
        top_k: int = 3,
    ) -> None:
        self._cache = cache
        self._embedder = embedder
        self._top_k = top_k

    @property
    def cache(self) -> EmbeddingCache:
        return self._cache

    async def rebuild_cache(self, force: bool = False) -> CacheSnapshot:
        return await self._cache.rebuild(force=force)

    async def search(self, query: str, k: int | None = None) -> list[str] | str:
        """
        Return the `k` ledger summaries closest to `query`.

        Returns INSUFFICIENT_DATA_MESSAGE instead of an empty list when
        the ledger has no rows.
        """
        if k is None:
            k = self._top_k
        snapshot = await self._cache.rebuild(force=False)

        if snapshot.is_empty:
            logger.info("Semantic search skipped: embedding cache is empty")
            return INSUFFICIENT_DATA_MESSAGE

        query_vector = await asyncio.to_thread(self._embedder.embed_query, query)
        ranked = self._cache.rank(query_vector, k, snapshot=snapshot)

        logger.info(
            "Semantic search: %d of %d documents (top similarity=%.3f)",
            len(ranked),
            len(snapshot.entries),
            ranked[0].similarity if ranked else 0.0,
        )
        return [scored.entry.document_text for scored in ranked]
