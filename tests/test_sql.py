# =============================================================================
# Unit Tests — SQL Guard and SQL Strategy
# =============================================================================
#
# The guard tests are pure string checks. The strategy tests use a mock
# LLM and an in-memory ledger store; nothing touches PostgreSQL.
# =============================================================================

from __future__ import annotations

import pytest

from agromark.agents.sql import (
    REFUSAL_PHRASE,
    SQL_MAX_TOKENS,
    SQL_REFUSAL_MESSAGE,
    SQL_TEMPERATURE,
    TABLE_MAPPING,
    SqlStrategy,
    build_sql_prompt,
    clean_sql_response,
    is_refusal,
)
from agromark.db.models import LEDGER_TABLES
from agromark.errors import SqlExecutionError, SqlSynthesisError, UnsafeSqlError
from agromark.services.sql_guard import validate_read_only_sql
from tests.conftest import FakeLedgerStore, make_llm, prompt_of, run

COUNT_SUPPLIERS = "SELECT COUNT(*) FROM pessoa WHERE tipo = 'FORNECEDOR';"
SUM_INPUTS = (
    'SELECT SUM(mc."valorTotal") FROM movimento_contas AS mc '
    'JOIN movimento_classificacao AS mcl ON mc.id = mcl."movimentoId" '
    'JOIN classificacao AS c ON mcl."classificacaoId" = c.id '
    "WHERE c.descricao = 'INSUMOS AGRÍCOLAS';"
)


def _reason(sql: str) -> str:
    with pytest.raises(UnsafeSqlError) as exc_info:
        validate_read_only_sql(sql, LEDGER_TABLES)
    return str(exc_info.value)


# ---------------------------------------------------------------------------
# Test: Read-Only Guard
# ---------------------------------------------------------------------------


class TestSqlGuardAccepts:
    """Statements the generator is expected to produce."""

    def test_simple_count(self):
        assert validate_read_only_sql(COUNT_SUPPLIERS, LEDGER_TABLES) == COUNT_SUPPLIERS

    def test_joined_aggregate(self):
        assert validate_read_only_sql(SUM_INPUTS, LEDGER_TABLES) == SUM_INPUTS

    def test_lowercase_select(self):
        validate_read_only_sql("select * from parcela_contas;", LEDGER_TABLES)

    def test_keyword_inside_string_literal(self):
        validate_read_only_sql(
            "SELECT * FROM pessoa WHERE \"razaoSocial\" ILIKE '%delete; drop%';",
            LEDGER_TABLES,
        )

    def test_cte_name_is_allowed(self):
        validate_read_only_sql(
            'WITH totais AS (SELECT "fornecedorId", SUM("valorTotal") AS total '
            'FROM movimento_contas GROUP BY "fornecedorId") '
            "SELECT * FROM totais ORDER BY total DESC LIMIT 5;",
            LEDGER_TABLES,
        )

    def test_extract_from_is_not_a_table(self):
        validate_read_only_sql(
            'SELECT EXTRACT(YEAR FROM "dataEmissao") AS ano, COUNT(*) '
            "FROM movimento_contas GROUP BY ano;",
            LEDGER_TABLES,
        )

    def test_public_schema_qualifier(self):
        validate_read_only_sql("SELECT * FROM public.pessoa;", LEDGER_TABLES)

    def test_subquery_in_from(self):
        validate_read_only_sql(
            "SELECT AVG(t.total) FROM (SELECT SUM(\"valorParcela\") AS total "
            "FROM parcela_contas GROUP BY \"movimentoId\") AS t;",
            LEDGER_TABLES,
        )

    def test_portuguese_column_aliases(self):
        validate_read_only_sql(
            'SELECT p."razaoSocial" AS "Nome do Fornecedor", '
            'SUM(mc."valorTotal") AS "Valor do Mês" '
            'FROM movimento_contas mc JOIN pessoa p ON p.id = mc."fornecedorId" '
            "GROUP BY 1;",
            LEDGER_TABLES,
        )

    def test_comma_separated_from_list(self):
        validate_read_only_sql(
            'SELECT COUNT(*) FROM movimento_contas mc, pessoa AS p '
            'WHERE p.id = mc."fornecedorId";',
            LEDGER_TABLES,
        )

    def test_from_inside_string_functions(self):
        validate_read_only_sql(
            'SELECT SUBSTRING("numeroNotaFiscal" FROM 1 FOR 4), '
            "TRIM(BOTH ' ' FROM descricao) FROM movimento_contas;",
            LEDGER_TABLES,
        )

    def test_lateral_subquery(self):
        validate_read_only_sql(
            "SELECT p.id, ult.total FROM pessoa p CROSS JOIN LATERAL "
            '(SELECT SUM("valorTotal") AS total FROM movimento_contas '
            'WHERE "fornecedorId" = p.id) AS ult;',
            LEDGER_TABLES,
        )


class TestSqlGuardRejects:
    """Anything that is not one read-only query over the ledger."""

    def test_empty(self):
        assert "vazia" in _reason(";")

    def test_delete(self):
        assert "DELETE" in _reason("DELETE FROM pessoa;")

    def test_stacked_statements(self):
        assert "mais de um comando" in _reason("SELECT 1; DROP TABLE pessoa;")

    def test_data_modifying_cte(self):
        assert "DELETE" in _reason(
            "WITH apagados AS (DELETE FROM pessoa RETURNING id) "
            "SELECT * FROM apagados;"
        )

    def test_select_into(self):
        assert "INTO" in _reason("SELECT * INTO copia FROM pessoa;")

    def test_system_catalog(self):
        assert "pg_user" in _reason("SELECT * FROM pg_user;")

    def test_information_schema(self):
        assert "information_schema" in _reason(
            "SELECT * FROM information_schema.tables;"
        )

    def test_forbidden_function(self):
        assert "dblink" in _reason("SELECT dblink('host=x', 'SELECT 1');")

    def test_unknown_table(self):
        assert "usuarios" in _reason("SELECT * FROM usuarios;")

    def test_unknown_table_in_join(self):
        assert "senhas" in _reason(
            "SELECT * FROM pessoa p JOIN senhas s ON s.id = p.id;"
        )

    def test_other_schema(self):
        assert "outro.pessoa" in _reason("SELECT * FROM outro.pessoa;")

    def test_keyword_hidden_after_comment(self):
        assert "mais de um comando" in _reason(
            "SELECT 1 -- harmless\n; UPDATE pessoa SET status = 'INATIVO';"
        )

    def test_second_table_in_from_list(self):
        assert "secret_table" in _reason("SELECT * FROM pessoa, secret_table;")

    def test_aliased_tables_in_from_list(self):
        assert "senhas" in _reason(
            "SELECT * FROM pessoa p, classificacao AS c, senhas s WHERE p.id = s.id;"
        )

    def test_unknown_table_inside_subquery_list(self):
        assert "usuarios" in _reason(
            "SELECT * FROM (SELECT * FROM pessoa, usuarios) AS t;"
        )

    def test_quoted_alias_does_not_mask_write(self):
        assert "DELETE" in _reason(
            'WITH x AS (DELETE FROM pessoa RETURNING id AS "Total do Dia") '
            "SELECT * FROM x;"
        )


# ---------------------------------------------------------------------------
# Test: Prompt and Response Cleaning
# ---------------------------------------------------------------------------


class TestSqlPrompt:
    """Tests for the SQL generation prompt."""

    def test_mapping_covers_every_ledger_table(self):
        assert set(TABLE_MAPPING.values()) == set(LEDGER_TABLES)

    def test_prompt_contents(self):
        prompt = build_sql_prompt("Quantas parcelas estão em aberto?")
        assert '"Quantas parcelas estão em aberto?"' in prompt
        assert "- MovimentoContas -> `movimento_contas`" in prompt
        assert "model ParcelaContas" in prompt
        assert """WHERE "statusParcela" = 'ABERTA'""" in prompt
        assert COUNT_SUPPLIERS in prompt
        assert REFUSAL_PHRASE in prompt


class TestCleanSqlResponse:

    def test_strips_code_fence(self):
        raw = "```sql\nSELECT COUNT(*) FROM pessoa\n```"
        assert clean_sql_response(raw) == "SELECT COUNT(*) FROM pessoa;"

    def test_keeps_existing_terminator(self):
        assert clean_sql_response(COUNT_SUPPLIERS) == COUNT_SUPPLIERS

    def test_refusal_detection_is_case_insensitive(self):
        assert is_refusal(clean_sql_response("não consigo responder"))

    def test_empty_response_is_refusal(self):
        assert is_refusal(clean_sql_response("```sql\n```"))

    def test_real_sql_is_not_refusal(self):
        assert not is_refusal(COUNT_SUPPLIERS)


# ---------------------------------------------------------------------------
# Test: SqlStrategy with Mock LLM and Store
# ---------------------------------------------------------------------------


class TestSqlStrategy:
    """Tests for generate → validate → execute."""

    def test_retrieve_runs_generated_sql(self):
        llm = make_llm(f"```sql\n{COUNT_SUPPLIERS}\n```")
        store = FakeLedgerStore(sql_rows=[{"count": 3}])
        strategy = SqlStrategy(llm=llm, store=store)

        sql, rows = run(strategy.retrieve("Quantos fornecedores existem?"))

        assert sql == COUNT_SUPPLIERS
        assert rows == [{"count": 3}]
        assert store.executed == [COUNT_SUPPLIERS]
        assert "Quantos fornecedores existem?" in prompt_of(llm, 0)

    def test_refusal_raises_without_executing(self):
        llm = make_llm(REFUSAL_PHRASE)
        store = FakeLedgerStore()
        strategy = SqlStrategy(llm=llm, store=store)

        with pytest.raises(SqlSynthesisError) as exc_info:
            run(strategy.retrieve("Qual a previsão do tempo?"))

        assert str(exc_info.value) == SQL_REFUSAL_MESSAGE
        assert store.executed == []

    def test_unsafe_sql_never_reaches_store(self):
        llm = make_llm("DROP TABLE pessoa;")
        store = FakeLedgerStore()
        strategy = SqlStrategy(llm=llm, store=store)

        with pytest.raises(UnsafeSqlError):
            run(strategy.retrieve("Apague os fornecedores"))

        assert store.executed == []

    def test_store_error_is_wrapped(self):
        store = FakeLedgerStore(
            sql_error=RuntimeError('column "valor" does not exist'),
        )
        strategy = SqlStrategy(llm=make_llm(), store=store)

        with pytest.raises(SqlExecutionError) as exc_info:
            run(strategy.execute_sql("SELECT valor FROM movimento_contas;"))

        assert str(exc_info.value) == (
            'A consulta SQL falhou: "column "valor" does not exist"'
        )
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_custom_allowed_tables(self):
        strategy = SqlStrategy(
            llm=make_llm(), store=FakeLedgerStore(), allowed_tables=["pessoa"],
        )
        with pytest.raises(UnsafeSqlError):
            run(strategy.execute_sql("SELECT * FROM movimento_contas;"))

    def test_generation_is_deterministic_and_bounded(self):
        llm = make_llm(COUNT_SUPPLIERS)
        strategy = SqlStrategy(llm=llm, store=FakeLedgerStore())

        run(strategy.generate_sql("Quantos fornecedores existem?"))

        kwargs = llm.complete.call_args.kwargs
        assert kwargs["temperature"] == SQL_TEMPERATURE == 0.0
        assert kwargs["max_tokens"] == SQL_MAX_TOKENS
