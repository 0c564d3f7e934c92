# =============================================================================
# Embedding Service — Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates vector embeddings using any OpenAI-compatible embedding API.
#
# Two call shapes are needed by semantic retrieval:
#   - embed_batch(): every ledger summary in one go on cache rebuild
#   - embed_query(): the user's question on every semantic search
#
# DESIGN DECISION: Sync OpenAI client. The embedding cache calls these
# through asyncio.to_thread() so the event loop is never blocked.
#
# No retry logic; failures propagate to the orchestrator, which turns
# them into an error answer for that single question.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from openai import OpenAI

from agromark.config import settings

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that can turn texts into fixed-length float vectors."""

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        ...

    def embed_query(self, text: str) -> list[float]:
        ...


class OpenAIEmbedder:
    """
    Embedder backed by the OpenAI embeddings endpoint.

    API key resolution order:
      1. OPENAI_API_KEY (explicit embedding key)
      2. LLM_API_KEY (shared key for an OpenAI-compatible provider)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        batch_size: int | None = None,
    ) -> None:
        resolved_key = api_key or settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.embedding_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model or settings.embedding_model
        self._batch_size = batch_size or settings.embedding_batch_size

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed texts, preserving input order.

        Texts are sent in sub-batches of `embedding_batch_size`; a ledger
        under that size costs exactly one API call.

        Raises:
            openai.APIError: If the API call fails.
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = [[] for _ in texts]

        for i in range(0, len(texts), self._batch_size):
            batch = list(texts[i : i + self._batch_size])
            logger.info(
                "Embedding batch %d–%d of %d texts (model=%s)",
                i + 1,
                min(i + self._batch_size, len(texts)),
                len(texts),
                self._model,
            )

            create_kwargs: dict = {"model": self._model, "input": batch}
            if settings.embedding_dimensions:
                create_kwargs["dimensions"] = settings.embedding_dimensions

            response = self._client.embeddings.create(**create_kwargs)

            # Items carry their input index; place them by it.
            for item in sorted(response.data, key=lambda x: x.index):
                all_embeddings[i + item.index] = item.embedding

        return all_embeddings

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        return self.embed_batch([text])[0]


# Lazy singleton — avoid import-time failures when the key isn't set
_embedder: OpenAIEmbedder | None = None


def get_embedder() -> OpenAIEmbedder:
    """Lazily initialize and cache the embedding client."""
    global _embedder
    if _embedder is None:
        _embedder = OpenAIEmbedder()
    return _embedder
