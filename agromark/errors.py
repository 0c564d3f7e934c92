# =============================================================================
# Agent Exceptions
# =============================================================================
#
# Every failure inside the agent is terminal for that one question. The
# orchestrator catches these at its boundary and turns them into a chat
# answer; nothing here ever reaches the HTTP layer.
#
#   AgentError
#   ├── SqlSynthesisError  — model declined to write SQL (shown verbatim)
#   ├── UnsafeSqlError     — generated SQL rejected by the read-only guard
#   └── SqlExecutionError  — database rejected the generated SQL
# =============================================================================


class AgentError(Exception):
    """Base class for expected, user-reportable agent failures."""


class SqlSynthesisError(AgentError):
    """The model could not (or would not) produce a SQL statement."""


class UnsafeSqlError(AgentError):
    """Generated SQL is not a single read-only query over known tables."""


class SqlExecutionError(AgentError):
    """The database rejected a generated SQL statement."""
