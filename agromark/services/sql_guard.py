# =============================================================================
# SQL Guard — Read-Only Allow-List for Generated SQL
# =============================================================================
#
# LLM-written SQL is executed verbatim against the ledger. Before that
# happens it must pass this guard:
#
# 1. Exactly one statement (a single trailing ";" is allowed)
# 2. Starts with SELECT or WITH
# 3. No keyword that can turn a SELECT/WITH into a write (data-modifying
#    CTEs, SELECT INTO, FOR UPDATE) or into DDL
# 4. No system catalogs, pg_* functions or server-side file/network access
# 5. Every FROM/JOIN item, including each entry of a comma-separated FROM
#    list, is a known ledger table or a CTE defined in the statement itself
#
# The statement is lexed once first: comments are dropped, string
# literals blanked to '' and quoted identifiers reduced to word characters
# ("Nome do Fornecedor" → "Nome_do_Fornecedor"), so neither
# `WHERE descricao ILIKE '%delete%'` nor `AS "Valor do Mês"` trips the
# keyword scan.
#
# DESIGN DECISION: Regex/scan-based, not a full SQL parser. The generator
# is instructed to produce simple SELECTs; anything the guard cannot
# confidently classify as read-only is rejected rather than guessed at.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from agromark.errors import UnsafeSqlError

logger = logging.getLogger(__name__)


# Statement-level commands (SET, DO, LOCK, CALL, ...) cannot follow a
# SELECT/WITH without a second statement, which rule 1 already rejects.
_FORBIDDEN_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "MERGE", "INTO",
    "DROP", "ALTER", "CREATE", "TRUNCATE",
    "GRANT", "REVOKE", "COPY",
)

_FORBIDDEN_FUNCTIONS = (
    "dblink", "lo_import", "lo_export", "set_config", "current_setting",
    "query_to_xml", "txid_current", "pg_read_file", "pg_sleep",
)

_FORBIDDEN_KEYWORD_RE = re.compile(
    r"\b(" + "|".join(_FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE,
)
_FORBIDDEN_FUNCTION_RE = re.compile(
    r"\b(" + "|".join(_FORBIDDEN_FUNCTIONS) + r')"?\s*\(', re.IGNORECASE,
)
_SYSTEM_OBJECT_RE = re.compile(
    r"\b(pg_\w+|information_schema)\b", re.IGNORECASE,
)

_TOKEN_RE = re.compile(
    r"(?P<line_comment>--[^\n]*)"
    r"|(?P<block_comment>/\*.*?\*/)"
    r"|(?P<literal>'(?:[^']|'')*')"
    r'|(?P<identifier>"(?:[^"]|"")*")',
    re.DOTALL,
)
_QUOTED_IDENTIFIER_RE = re.compile(r'"[^"]*"')
_NON_WORD_RE = re.compile(r"\W+")

# FROM inside these constructs names a column, not a table
_NON_TABLE_FROM_RE = re.compile(
    r"\bIS\s+(?:NOT\s+)?DISTINCT\s+FROM\b", re.IGNORECASE,
)
_FROM_ARGUMENT_FUNCTIONS = frozenset({"extract", "substring", "trim", "overlay"})

_IDENTIFIER = r'(?:"[^"]*"|[A-Za-z_]\w*)'
_FROM_JOIN_RE = re.compile(r"\b(?:FROM|JOIN)\b", re.IGNORECASE)
_ITEM_MODIFIER_RE = re.compile(r"\s*(?:LATERAL|ONLY)\b", re.IGNORECASE)
_FROM_ITEM_RE = re.compile(
    rf"\s*({_IDENTIFIER}(?:\s*\.\s*{_IDENTIFIER})?)", re.IGNORECASE,
)
_ALIAS_RE = re.compile(rf"\s*(AS\s+)?({_IDENTIFIER})", re.IGNORECASE)
_TRAILING_WORD_RE = re.compile(r"(\w+)\s*$")
_CTE_NAME_RE = re.compile(
    rf"(?:\bWITH\s+(?:RECURSIVE\s+)?|,\s*)({_IDENTIFIER})\s+AS\s*\(",
    re.IGNORECASE,
)

# Words that end a FROM item rather than alias it
_CLAUSE_WORDS = frozenset({
    "WHERE", "GROUP", "ORDER", "LIMIT", "OFFSET", "HAVING", "WINDOW",
    "FETCH", "FOR", "RETURNING", "TABLESAMPLE",
    "JOIN", "INNER", "LEFT", "RIGHT", "FULL", "OUTER", "CROSS", "NATURAL",
    "ON", "USING", "UNION", "EXCEPT", "INTERSECT",
    "SELECT", "FROM", "AND", "OR",
})


def validate_read_only_sql(sql: str, allowed_tables: Iterable[str]) -> str:
    """
    Assert that `sql` is a single read-only query over `allowed_tables`.

    Args:
        sql: The statement as it will be executed.
        allowed_tables: Physical table names the statement may read.

    Returns:
        The statement, unchanged.

    Raises:
        UnsafeSqlError: With a short Portuguese reason, shown to the user.
    """
    code = _normalise_tokens(sql).strip().rstrip(";").strip()

    if not code:
        raise _reject("A consulta SQL gerada está vazia.")

    if ";" in code:
        raise _reject(
            "A consulta SQL gerada contém mais de um comando."
        )

    first_word = code.split(None, 1)[0].upper()
    if first_word not in ("SELECT", "WITH"):
        raise _reject(
            f"Apenas consultas de leitura são permitidas (recebido: {first_word})."
        )

    keyword = _FORBIDDEN_KEYWORD_RE.search(_QUOTED_IDENTIFIER_RE.sub('""', code))
    if keyword:
        raise _reject(
            f"A consulta SQL gerada usa um comando não permitido: "
            f"{keyword.group(1).upper()}."
        )

    function = _FORBIDDEN_FUNCTION_RE.search(code)
    if function:
        raise _reject(
            f"A consulta SQL gerada usa uma função não permitida: "
            f"{function.group(1)}."
        )

    system_object = _SYSTEM_OBJECT_RE.search(code)
    if system_object:
        raise _reject(
            f"A consulta SQL gerada acessa objetos do sistema: "
            f"{system_object.group(1)}."
        )

    allowed = {name.lower() for name in allowed_tables}
    allowed |= {_normalise_identifier(n) for n in _CTE_NAME_RE.findall(code)}

    for reference in _table_references(code):
        table = _resolve_table(reference)
        if table not in allowed:
            raise _reject(
                f"A consulta SQL gerada acessa uma tabela desconhecida: {table}."
            )

    return sql


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _reject(reason: str) -> UnsafeSqlError:
    logger.warning("Rejected generated SQL: %s", reason)
    return UnsafeSqlError(reason)


def _normalise_tokens(sql: str) -> str:
    """Drop comments, blank string literals, flatten quoted identifiers."""

    def replace(match: re.Match) -> str:
        kind = match.lastgroup
        if kind == "literal":
            return "''"
        if kind == "identifier":
            return '"' + _NON_WORD_RE.sub("_", match.group()[1:-1]) + '"'
        return " "

    return _TOKEN_RE.sub(replace, sql)


def _normalise_identifier(identifier: str) -> str:
    return identifier.strip().strip('"').lower()


def _resolve_table(reference: str) -> str:
    """
    Reduce a FROM/JOIN target to a bare table name.

    `public.pessoa` and `"pessoa"` both resolve to `pessoa`. Any other
    schema qualifier is kept so it fails the allow-list check.
    """
    parts = [_normalise_identifier(p) for p in reference.split(".")]
    if len(parts) == 2 and parts[0] == "public":
        return parts[1]
    return ".".join(parts)


def _table_references(code: str) -> list[str]:
    """Every table named by a FROM list or JOIN, in statement order."""
    code = _NON_TABLE_FROM_RE.sub(" ", code)
    references: list[str] = []
    for keyword in _FROM_JOIN_RE.finditer(code):
        if _enclosing_function(code, keyword.start()) in _FROM_ARGUMENT_FUNCTIONS:
            continue
        references.extend(_from_items(code, keyword.end()))
    return references


def _from_items(code: str, pos: int) -> list[str]:
    """
    Walk the comma-separated item list starting at `pos`.

    Subqueries are skipped here; their own FROM clauses are visited by
    _table_references(). Table functions (`generate_series(...)`) are
    reported under their name so they fail the allow-list.
    """
    tables: list[str] = []
    while True:
        modifier = _ITEM_MODIFIER_RE.match(code, pos)
        if modifier:
            pos = modifier.end()

        pos = _skip_space(code, pos)
        if code.startswith("(", pos):
            pos = _skip_parens(code, pos)
        else:
            item = _FROM_ITEM_RE.match(code, pos)
            if not item or _is_clause_word(item.group(1)):
                return tables
            tables.append(item.group(1))
            pos = _skip_space(code, item.end())
            if code.startswith("(", pos):
                pos = _skip_parens(code, pos)

        alias = _ALIAS_RE.match(code, pos)
        if alias and (alias.group(1) or not _is_clause_word(alias.group(2))):
            pos = _skip_space(code, alias.end())
            if code.startswith("(", pos):  # column alias list
                pos = _skip_parens(code, pos)

        pos = _skip_space(code, pos)
        if not code.startswith(",", pos):
            return tables
        pos += 1


def _is_clause_word(identifier: str) -> bool:
    return not identifier.startswith('"') and identifier.upper() in _CLAUSE_WORDS


def _skip_space(code: str, pos: int) -> int:
    while pos < len(code) and code[pos].isspace():
        pos += 1
    return pos


def _skip_parens(code: str, pos: int) -> int:
    """Index just past the parenthesis group opening at `pos`."""
    depth = 0
    for index in range(pos, len(code)):
        if code[index] == "(":
            depth += 1
        elif code[index] == ")":
            depth -= 1
            if depth == 0:
                return index + 1
    return len(code)


def _enclosing_function(code: str, pos: int) -> str | None:
    """Lower-cased word before the innermost "(" enclosing `pos`, if any."""
    depth = 0
    for index in range(pos - 1, -1, -1):
        if code[index] == ")":
            depth += 1
        elif code[index] == "(":
            if depth == 0:
                word = _TRAILING_WORD_RE.search(code, 0, index)
                return word.group(1).lower() if word else None
            depth -= 1
    return None
