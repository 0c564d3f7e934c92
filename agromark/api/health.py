# =============================================================================
# Health API — Local Liveness Check
# =============================================================================
#
# GET /health reports whether the service is up and whether an API key
# for the configured LLM provider is present. It makes no network calls,
# so it is safe for load-balancer health checks.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agromark.config import Settings, get_settings
from agromark.models.responses import HealthResponse

router = APIRouter(tags=["Health"])


def llm_key_configured(settings: Settings) -> bool:
    """True when the selected LLM provider can find an API key."""
    if settings.llm_api_key:
        return True
    if settings.llm_provider == "openai_compatible":
        return bool(settings.openai_api_key)
    return bool(settings.anthropic_api_key)


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={500: {"model": HealthResponse}},
    summary="Service health check",
)
async def health_endpoint(
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    configured = llm_key_configured(settings)

    body = HealthResponse(
        status="ok" if configured else "error",
        version=settings.app_version,
        service=settings.app_name,
        llm_api_key="configured" if configured else "missing",
    )
    return JSONResponse(
        status_code=200 if configured else 500,
        content=body.model_dump(),
    )
