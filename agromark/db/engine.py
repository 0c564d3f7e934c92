# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine over asyncpg. The agent is read-only against the
# ledger, so there is a single engine and a single session factory. The
# ledger store opens one short-lived session per read (cache rebuild or
# SQL execution) and never commits.
# =============================================================================

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agromark.config import settings

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo (debug mode): logs every statement, including LLM-generated SQL.
# - pool_size / max_overflow: the agent issues at most one query at a time
#   per request, so a small pool is enough.
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

# expire_on_commit=False: loaded rows stay readable after the session
# closes, which the ledger store relies on when rendering summaries.
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

