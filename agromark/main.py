# =============================================================================
# Application Entry Point — FastAPI App Assembly
# =============================================================================
#
# Run with:
#   uvicorn agromark.main:app --reload
#
# Routes are mounted under /api to match the back-office frontend:
#   POST /api/agent/query
#   POST /api/agent/cache/rebuild
#   GET  /api/health
# =============================================================================

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agromark.api import agent, health
from agromark.config import settings
from agromark.db.engine import async_engine
from agromark.logging_setup import setup_logging

setup_logging(settings.log_level)


# Dispose the connection pool once the server shuts down
@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await async_engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Natural-language Q&A over the AgroMark accounts-payable ledger.",
    lifespan=lifespan,
)

app.include_router(agent.router, prefix="/api")
app.include_router(health.router, prefix="/api")


# The chat frontend reads `error`, not FastAPI's default `detail`
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )
