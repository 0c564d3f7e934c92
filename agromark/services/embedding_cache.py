# =============================================================================
# Embedding Cache — In-Process Snapshot of Embedded Ledger Summaries
# =============================================================================
#
# Semantic search runs over one summary sentence per ledger row, e.g.:
#
#   Nota fiscal número 4512 do fornecedor AGRO SUL LTDA com descrição
#   "Óleo diesel S10" classificada como "MANUTENÇÃO E OPERAÇÃO" no valor
#   de R$1830.00.
#
# The summaries and their vectors live in memory as an immutable
# `CacheSnapshot`. A rebuild reads the whole ledger, embeds every summary
# in one batch and swaps the new snapshot in with a single assignment, so
# readers see either the old snapshot or the new one, never a mix.
#
# LIFECYCLE:
#   - Lazily built on the first semantic search
#   - Rebuilt when older than the TTL (default 5 minutes) or when forced
#   - No eviction beyond whole-snapshot replacement
#
# DESIGN DECISION: An asyncio.Lock serialises rebuilds. Concurrent
# requests that find the cache stale wait for the one rebuild in flight
# and then reuse its snapshot instead of each embedding the ledger.
#
# DESIGN DECISION: Brute-force cosine scan, O(N·d) per query. The ledger
# of a single farm back-office is small; no ANN index is warranted.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from agromark.services.embedder import Embedder
from agromark.services.ledger_store import LedgerRow, LedgerStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmbeddingCacheEntry:
    """One embedded ledger row."""

    source_row_id: int
    document_text: str
    vector: tuple[float, ...]


@dataclass(frozen=True)
class CacheSnapshot:
    """A complete, immutable generation of the cache."""

    entries: tuple[EmbeddingCacheEntry, ...]
    built_at: float  # clock() reading taken when the rebuild started

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class ScoredEntry:
    entry: EmbeddingCacheEntry
    similarity: float


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class EmbeddingCache:
    """
    Process-wide cache of ledger-summary embeddings.

    Args:
        store: Source of ledger rows.
        embedder: Turns summaries into vectors (sync; run in a thread).
        ttl_seconds: Age after which the next warm-up rebuilds.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        store: LedgerStore,
        embedder: Embedder,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot: CacheSnapshot | None = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> CacheSnapshot | None:
        """The current snapshot, or None before the first build."""
        return self._snapshot

    @property
    def ttl(self) -> float:
        return self._ttl

    def is_fresh(self) -> bool:
        snapshot = self._snapshot
        return (
            snapshot is not None
            and (self._clock() - snapshot.built_at) < self._ttl
        )

    async def rebuild(self, force: bool = False) -> CacheSnapshot:
        """
        Make sure the cache holds a snapshot younger than the TTL.

        A no-op returning the current snapshot when it is still fresh and
        `force` is False. Otherwise reloads the ledger, embeds every
        summary in one batch and swaps the result in.

        Returns:
            The snapshot in effect after the call. Empty when the ledger
            has no rows.
        """
        if not force and self.is_fresh():
            logger.debug("Embedding cache fresh, reusing snapshot")
            return self._snapshot

        async with self._lock:
            # Another request may have rebuilt while we waited
            if not force and self.is_fresh():
                return self._snapshot

            logger.info(
                "Rebuilding embedding cache (force=%s)", force,
            )
            started_at = self._clock()
            rows = await self._store.fetch_ledger_rows()

            if not rows:
                logger.info("No ledger rows found; embedding cache is empty")
                self._snapshot = CacheSnapshot(entries=(), built_at=started_at)
                return self._snapshot

            documents = [render_summary(row) for row in rows]
            vectors = await asyncio.to_thread(
                self._embedder.embed_batch, documents,
            )

            entries = tuple(
                EmbeddingCacheEntry(
                    source_row_id=row.id,
                    document_text=document,
                    vector=tuple(vector),
                )
                for row, document, vector in zip(
                    rows, documents, vectors, strict=True,
                )
            )
            self._snapshot = CacheSnapshot(entries=entries, built_at=started_at)

            logger.info(
                "Embedding cache rebuilt with %d documents", len(entries),
            )
            return self._snapshot

    def rank(
        self,
        query_vector: Sequence[float],
        k: int,
        snapshot: CacheSnapshot | None = None,
    ) -> list[ScoredEntry]:
        """
        Return the `k` entries most similar to `query_vector`.

        Sorted by cosine similarity, highest first. Ties keep their cache
        order (Python's sort is stable, also with reverse=True).
        """
        snapshot = snapshot or self._snapshot
        if snapshot is None:
            return []

        scored = [
            ScoredEntry(entry=entry, similarity=cosine_similarity(query_vector, entry.vector))
            for entry in snapshot.entries
        ]
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored[:k]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def render_summary(row: LedgerRow) -> str:
    """Render a ledger row as the Portuguese sentence that gets embedded."""
    descricao = row.descricao or "não especificada"
    classificacoes = ", ".join(row.classificacoes)
    return (
        f"Nota fiscal número {row.numero_nota_fiscal} do fornecedor "
        f"{row.fornecedor} com descrição \"{descricao}\" classificada como "
        f"\"{classificacoes}\" no valor de R${row.valor_total}."
    )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Dot product over the product of L2 norms.

    A zero-norm vector scores 0.0.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0.0:
        return 0.0
    return dot / denominator
