# =============================================================================
# Agent API — Natural-Language Ledger Questions
# =============================================================================
#
# POST /agent/query          — ask Mark a question about the ledger
# POST /agent/cache/rebuild  — force the embedding cache to reload
#
# This endpoint is thin by design: request validation, error mapping and
# response shaping. Errors inside the agent (bad SQL, refusals, model
# failures) are already turned into answer strings by the orchestrator
# and come back as 200s; only failures outside it become 500s.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from agromark.agents.orchestrator import LedgerAgent, get_ledger_agent
from agromark.models.requests import AgentQueryRequest
from agromark.models.responses import AgentQueryResponse, CacheRebuildResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["Ledger Agent"])

QUERY_REQUIRED_MESSAGE = (
    'A propriedade "query" é obrigatória no corpo da requisição.'
)
QUERY_FAILED_MESSAGE = "Falha ao processar a sua pergunta."


def get_agent() -> LedgerAgent:
    """
    FastAPI dependency returning the process-wide LedgerAgent.

    Tests override this via app.dependency_overrides.
    """
    try:
        return get_ledger_agent()
    except ValueError as e:
        # Missing API key or configuration error
        logger.error("Ledger agent unavailable: %s", e)
        raise HTTPException(status_code=500, detail=QUERY_FAILED_MESSAGE) from e


# ---------------------------------------------------------------------------
# POST /agent/query
# ---------------------------------------------------------------------------


@router.post(
    "/query",
    response_model=AgentQueryResponse,
    summary="Ask a question about the ledger",
    description=(
        "Routes the question to SQL, semantic search or a direct reply and "
        "returns Mark's answer in Portuguese."
    ),
)
async def query_endpoint(
    request: AgentQueryRequest,
    agent: LedgerAgent = Depends(get_agent),
) -> AgentQueryResponse:
    """
    Error handling:
    - Missing or blank query → 400 with a fixed message
    - Anything escaping the agent → 500 with a generic message
    """
    if not request.query or not request.query.strip():
        raise HTTPException(status_code=400, detail=QUERY_REQUIRED_MESSAGE)

    logger.info(
        "Agent query: '%s' (history=%d turns)",
        request.query[:80], len(request.history),
    )

    try:
        answer = await agent.answer_query(request.query, request.history)
    except Exception as e:
        logger.exception("Agent query failed: %s", e)
        raise HTTPException(status_code=500, detail=QUERY_FAILED_MESSAGE) from e

    return AgentQueryResponse(answer=answer)


# ---------------------------------------------------------------------------
# POST /agent/cache/rebuild
# ---------------------------------------------------------------------------


@router.post(
    "/cache/rebuild",
    response_model=CacheRebuildResponse,
    summary="Rebuild the semantic search cache",
    description=(
        "Re-reads every ledger entry and re-embeds its summary, so new "
        "entries are searchable before the cache TTL expires."
    ),
)
async def rebuild_cache_endpoint(
    agent: LedgerAgent = Depends(get_agent),
) -> CacheRebuildResponse:
    try:
        snapshot = await agent.rebuild_cache(force=True)
    except Exception as e:
        logger.exception("Embedding cache rebuild failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Falha ao reconstruir o cache de busca: {e}",
        ) from e

    return CacheRebuildResponse(
        documents=len(snapshot.entries),
        ttl_seconds=agent.cache_ttl,
    )
