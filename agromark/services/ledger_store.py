# =============================================================================
# Ledger Store — Read Access to the Relational Ledger
# =============================================================================
#
# The agent needs exactly two things from the database:
#
# 1. fetch_ledger_rows() — every movement with its supplier and category
#    labels, used to (re)build the embedding cache.
# 2. execute_sql() — run an ad hoc SQL string and return its rows as
#    plain dicts, used by the SQL strategy.
#
# DESIGN DECISION: Protocol + one SQLAlchemy implementation, mirroring
# the LLMProvider pattern. Tests hand the agents an in-memory fake.
#
# execute_sql() does not validate or parameterise anything; callers are
# responsible for passing the statement through the SQL guard first.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from agromark.db.engine import async_session_factory
from agromark.db.models import MovimentoClassificacao, MovimentoContas

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LedgerRow:
    """A ledger movement flattened with its counterparty and category labels."""

    id: int
    numero_nota_fiscal: str
    fornecedor: str
    valor_total: Decimal
    descricao: str | None = None
    classificacoes: list[str] = field(default_factory=list)


# Rows come back from the driver untouched: Decimal, int, datetime, str...
SqlResult = list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LedgerStore(Protocol):
    """Read-side interface to the ledger database."""

    async def fetch_ledger_rows(self) -> list[LedgerRow]:
        """Return every movement, ordered by id."""
        ...

    async def execute_sql(self, sql: str) -> SqlResult:
        """Execute a raw SQL statement and return its rows as dicts."""
        ...


# ---------------------------------------------------------------------------
# Implementation: SQLAlchemy (PostgreSQL via asyncpg)
# ---------------------------------------------------------------------------


class SqlAlchemyLedgerStore:
    """Ledger store backed by the async SQLAlchemy session factory."""

    def __init__(self, session_factory=async_session_factory) -> None:
        self._session_factory = session_factory

    async def fetch_ledger_rows(self) -> list[LedgerRow]:
        stmt = (
            select(MovimentoContas)
            .options(
                selectinload(MovimentoContas.fornecedor),
                selectinload(MovimentoContas.classificacoes).selectinload(
                    MovimentoClassificacao.classificacao
                ),
            )
            .order_by(MovimentoContas.id)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            movimentos = result.scalars().all()

        rows = [
            LedgerRow(
                id=mov.id,
                numero_nota_fiscal=mov.numero_nota_fiscal,
                fornecedor=mov.fornecedor.razao_social,
                valor_total=mov.valor_total,
                descricao=mov.descricao,
                classificacoes=[
                    link.classificacao.descricao for link in mov.classificacoes
                ],
            )
            for mov in movimentos
        ]

        logger.debug("Loaded %d ledger rows", len(rows))
        return rows

    async def execute_sql(self, sql: str) -> SqlResult:
        async with self._session_factory() as session:
            # Driver-level execution: ":name" inside the SQL is not a bind
            connection = await session.connection()
            result = await connection.exec_driver_sql(sql)
            rows = [dict(row) for row in result.mappings().all()]
            # Read-only: never commit what the statement did
            await session.rollback()

        logger.debug("Raw SQL returned %d rows", len(rows))
        return rows
