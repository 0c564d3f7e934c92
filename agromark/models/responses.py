# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming OUT of the API. The query endpoint only ever
# returns a single Markdown-formatted answer string; SQL, retrieved
# documents and router markers never leave the server.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, Field


class AgentQueryResponse(BaseModel):
    """Response for POST /api/agent/query."""

    answer: str = Field(
        description="Mark's reply, Portuguese, may contain **bold** Markdown",
    )


class CacheRebuildResponse(BaseModel):
    """Response for POST /api/agent/cache/rebuild."""

    documents: int = Field(description="Ledger summaries now held in the cache")
    ttl_seconds: float = Field(description="Age after which the cache is rebuilt")


class HealthResponse(BaseModel):
    """Response for GET /api/health — confirms the API is running."""

    status: Literal["ok", "error"] = "ok"
    version: str
    service: str
    llm_api_key: Literal["configured", "missing"]
