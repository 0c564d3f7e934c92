# =============================================================================
# SQL Strategy — Text-to-SQL Synthesis and Guarded Execution
# =============================================================================
#
# FLOW:
#   question ──▶ generate_sql() ──▶ refusal? ──▶ SqlSynthesisError
#                                     │
#                                     ▼
#                  execute_sql(): sql_guard ──▶ ledger store ──▶ rows
#
# The prompt carries the logical schema (model/field names as the
# back-office declares them), the model → physical table mapping, the
# quoting rules for camelCase columns and two worked examples.
#
# DESIGN DECISION: Generated SQL is never cached. The same question may
# produce a different statement on the next call.
#
# DESIGN DECISION: Execution is verbatim (no parameter binding) but only
# after the read-only guard accepts the statement.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from agromark.db.models import LEDGER_TABLES
from agromark.errors import SqlExecutionError, SqlSynthesisError
from agromark.services.ledger_store import LedgerStore, SqlResult
from agromark.services.llm import LLMProvider, ask_llm
from agromark.services.sql_guard import validate_read_only_sql

logger = logging.getLogger(__name__)

REFUSAL_PHRASE = "NÃO CONSIGO RESPONDER"
SQL_REFUSAL_MESSAGE = (
    "Não foi possível gerar uma consulta SQL para esta pergunta."
)

# One deterministic statement; long enough for a few joins and a CTE
SQL_TEMPERATURE = 0.0
SQL_MAX_TOKENS = 1024

# ---------------------------------------------------------------------------
# Schema handed to the model
# ---------------------------------------------------------------------------

SCHEMA_DESCRIPTION = """\
model Pessoa {
  id           Int            @id @default(autoincrement())
  tipo         PessoaTipo
  razaoSocial  String
  fantasia     String?
  documento    String
  status       StatusRegistro @default(ATIVO)
  criadoEm     DateTime       @default(now())
  atualizadoEm DateTime       @updatedAt
}

model Classificacao {
  id        Int               @id @default(autoincrement())
  tipo      ClassificacaoTipo
  descricao String
  status    StatusRegistro    @default(ATIVO)
}

model MovimentoContas {
  id               Int           @id @default(autoincrement())
  tipo             MovimentoTipo @default(APAGAR)
  numeroNotaFiscal String
  dataEmissao      DateTime
  descricao        String?
  valorTotal       Decimal       @db.Decimal(14, 2)
  fornecedorId     Int           // -> Pessoa.id
  faturadoId       Int           // -> Pessoa.id
}

model ParcelaContas {
  id             Int           @id @default(autoincrement())
  identificacao  String
  dataVencimento DateTime
  valorParcela   Decimal       @db.Decimal(14, 2)
  valorSaldo     Decimal       @db.Decimal(14, 2)
  statusParcela  StatusParcela @default(ABERTA)
  movimentoId    Int           // -> MovimentoContas.id
}

model MovimentoClassificacao {
  movimentoId     Int  // -> MovimentoContas.id
  classificacaoId Int  // -> Classificacao.id
  @@id([movimentoId, classificacaoId])
}

enum PessoaTipo        { FORNECEDOR, FATURADO, CLIENTE }
enum StatusRegistro    { ATIVO, INATIVO }
enum ClassificacaoTipo { DESPESA, RECEITA }
enum MovimentoTipo     { APAGAR, ARECEBER }
enum StatusParcela     { ABERTA, PAGA, CANCELADA }"""

TABLE_MAPPING: dict[str, str] = {
    "MovimentoContas": "movimento_contas",
    "ParcelaContas": "parcela_contas",
    "Pessoa": "pessoa",
    "Classificacao": "classificacao",
    "MovimentoClassificacao": "movimento_classificacao",
}

_SQL_PROMPT = """\
Sua única tarefa é gerar uma consulta PostgreSQL válida para responder à \
pergunta do usuário, usando o schema fornecido.

**Schema (use para nomes de colunas):**
{schema}

**REGRA MAIS IMPORTANTE:** Use SEMPRE os nomes de tabela em snake_case do \
mapeamento (ex: `movimento_contas`). NUNCA use os nomes de modelo em \
PascalCase do schema (ex: `MovimentoContas`).

**Mapeamento OBRIGATÓRIO (Modelo -> Tabela SQL):**
{mapping}

**Outras Regras:**
1. Gere APENAS a consulta SQL, sem explicações ou markdown.
2. Coloque nomes de colunas camelCase entre aspas duplas (ex: "valorTotal", "movimentoId").
3. Para status, use os valores do Enum. Para 'parcelas em aberto', a \
condição é `WHERE "statusParcela" = 'ABERTA'`.
4. Gere uma única consulta SELECT terminada em ponto e vírgula (;).
5. Se não puder responder, retorne "{refusal}".

**EXEMPLO 1 (Simples):**
- **Pergunta:** "Quantos fornecedores existem?"
- **SQL Gerado:** SELECT COUNT(*) FROM pessoa WHERE tipo = 'FORNECEDOR';

**EXEMPLO 2 (Complexo com JOIN e Soma):**
- **Pergunta:** "Quanto já gastamos com insumos agrícolas?"
- **SQL Gerado:** SELECT SUM(mc."valorTotal") FROM movimento_contas AS mc \
JOIN movimento_classificacao AS mcl ON mc.id = mcl."movimentoId" \
JOIN classificacao AS c ON mcl."classificacaoId" = c.id \
WHERE c.descricao = 'INSUMOS AGRÍCOLAS';

**Pergunta do Usuário:**
"{query}"

**SQL Gerado:**"""

_CODE_FENCE_RE = re.compile(r"```(?:sql)?", re.IGNORECASE)


def build_sql_prompt(query: str) -> str:
    mapping = "\n".join(
        f"- {model} -> `{table}`" for model, table in TABLE_MAPPING.items()
    )
    return _SQL_PROMPT.format(
        schema=SCHEMA_DESCRIPTION,
        mapping=mapping,
        refusal=REFUSAL_PHRASE,
        query=query,
    )


def clean_sql_response(text: str) -> str:
    """Strip markdown code fences and make sure the statement ends in ';'."""
    sql = _CODE_FENCE_RE.sub("", text).strip()
    if not sql.endswith(";"):
        sql += ";"
    return sql


def is_refusal(sql: str) -> bool:
    """True when the model produced no statement or declined explicitly."""
    return not sql.rstrip(";").strip() or REFUSAL_PHRASE in sql.upper()


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


class SqlStrategy:
    """Answers exact-figure questions by generating and running SQL."""

    def __init__(
        self,
        llm: LLMProvider,
        store: LedgerStore,
        allowed_tables: Iterable[str] = LEDGER_TABLES,
    ) -> None:
        self._llm = llm
        self._store = store
        self._allowed_tables = tuple(allowed_tables)

    async def generate_sql(self, query: str) -> str:
        """
        Ask the model for one SQL statement answering `query`.

        Returns the cleaned statement, which may be the refusal phrase;
        see is_refusal().
        """
        raw = await ask_llm(
            self._llm,
            build_sql_prompt(query),
            temperature=SQL_TEMPERATURE,
            max_tokens=SQL_MAX_TOKENS,
        )
        return clean_sql_response(raw)

    async def execute_sql(self, sql: str) -> SqlResult:
        """
        Validate and execute `sql`.

        Raises:
            UnsafeSqlError: The guard rejected the statement.
            SqlExecutionError: The database rejected the statement.
        """
        validate_read_only_sql(sql, self._allowed_tables)

        try:
            return await self._store.execute_sql(sql)
        except Exception as e:
            logger.error("Generated SQL failed: %s (sql: %s)", e, sql)
            raise SqlExecutionError(f'A consulta SQL falhou: "{e}"') from e

    async def retrieve(self, query: str) -> tuple[str, SqlResult]:
        """
        Generate, validate and run SQL for `query`.

        Returns:
            (sql, rows)

        Raises:
            SqlSynthesisError: The model declined to write SQL.
        """
        sql = await self.generate_sql(query)
        if is_refusal(sql):
            logger.info("SQL generator declined query: '%s'", query[:80])
            raise SqlSynthesisError(SQL_REFUSAL_MESSAGE)

        logger.info("Generated SQL: %s", sql)
        rows = await self.execute_sql(sql)
        logger.info("SQL returned %d rows", len(rows))
        return sql, rows
