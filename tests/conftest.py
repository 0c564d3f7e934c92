# =============================================================================
# Shared Test Fixtures — Fake LLM, Ledger Store and Embedder
# =============================================================================
#
# Every test runs without API keys or a database. The fakes record what
# they were asked so tests can assert on prompts, SQL and call counts.
# =============================================================================

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from agromark.services.ledger_store import LedgerRow
from agromark.services.llm import LLMResponse


def run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def make_llm(*replies):
    """
    AsyncMock LLM provider answering `replies` in order.

    An Exception instance in `replies` is raised instead of returned.
    """
    llm = AsyncMock()
    llm.complete.side_effect = [
        reply if isinstance(reply, Exception) else LLMResponse(
            content=reply,
            model="test-model",
            input_tokens=10,
            output_tokens=5,
        )
        for reply in replies
    ]
    return llm


def prompt_of(llm, call_index: int) -> str:
    """The single user message sent on the `call_index`-th LLM call."""
    call = llm.complete.call_args_list[call_index]
    return call.kwargs["messages"][0]["content"]


class FakeLedgerStore:
    """In-memory LedgerStore."""

    def __init__(self, rows=(), sql_rows=None, sql_error: Exception | None = None):
        self.rows = list(rows)
        self.sql_rows = sql_rows if sql_rows is not None else []
        self.sql_error = sql_error
        self.fetch_calls = 0
        self.executed: list[str] = []

    async def fetch_ledger_rows(self):
        self.fetch_calls += 1
        return list(self.rows)

    async def execute_sql(self, sql: str):
        self.executed.append(sql)
        if self.sql_error is not None:
            raise self.sql_error
        return list(self.sql_rows)


KEYWORDS = ("diesel", "fertiliz", "semente")


def keyword_vector(text: str) -> list[float]:
    """One dimension per keyword: 1.0 when the text mentions it."""
    lowered = text.lower()
    return [1.0 if kw in lowered else 0.0 for kw in KEYWORDS]


class FakeEmbedder:
    """Keyword-count embedder; `query_vectors` overrides per query text."""

    def __init__(self, query_vectors: dict[str, list[float]] | None = None):
        self.query_vectors = query_vectors or {}
        self.batch_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def embed_batch(self, texts):
        self.batch_calls.append(list(texts))
        return [keyword_vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls.append(text)
        return self.query_vectors.get(text, keyword_vector(text))


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def ledger_row(
    id: int,
    nota: str,
    fornecedor: str,
    valor: str,
    descricao: str | None,
    *classificacoes: str,
) -> LedgerRow:
    return LedgerRow(
        id=id,
        numero_nota_fiscal=nota,
        fornecedor=fornecedor,
        valor_total=Decimal(valor),
        descricao=descricao,
        classificacoes=list(classificacoes),
    )


@pytest.fixture
def sample_rows() -> list[LedgerRow]:
    return [
        ledger_row(1, "1001", "SEMENTES BOA SAFRA", "5400.00",
                   "Sementes de soja", "INSUMOS AGRÍCOLAS"),
        ledger_row(2, "4512", "AGRO SUL LTDA", "1830.00",
                   "Óleo diesel S10", "MANUTENÇÃO E OPERAÇÃO"),
        ledger_row(3, "2210", "FERTIMAX", "12750.90",
                   "Fertilizante NPK 10-10-10", "INSUMOS AGRÍCOLAS"),
        ledger_row(4, "3307", "CONTABILIDADE RURAL", "900.00",
                   None, "ADMINISTRATIVAS"),
    ]
