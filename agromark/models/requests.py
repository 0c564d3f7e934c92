# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming INTO the API. The chat frontend posts the current
# question together with the visible conversation, oldest turn first.
#
# DESIGN DECISION: `query` is optional at the schema level. A missing or
# blank question must produce the back-office's own 400 message, not
# FastAPI's generic 422, so the route checks it explicitly.
#
# A numeric question is answered as text and any other non-string
# question counts as missing. `"history": null` is an empty conversation.
# =============================================================================

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationTurn(BaseModel):
    """One message of the chat history as the frontend sends it."""

    sender: Literal["user", "agent"] = Field(
        description="'user' for the person asking, 'agent' for Mark's replies",
    )
    text: str = Field(description="Message text as displayed in the chat")


class AgentQueryRequest(BaseModel):
    """
    Request body for POST /api/agent/query.

    Example:
        {
            "query": "Quanto gastamos com combustível este ano?",
            "history": [
                {"sender": "user", "text": "Olá, Mark!"},
                {"sender": "agent", "text": "Olá! Como posso ajudar?"}
            ]
        }
    """

    query: str | None = Field(
        default=None,
        description="The question to answer about the ledger",
        examples=["Quantos fornecedores existem?"],
    )
    history: list[ConversationTurn] = Field(
        default_factory=list,
        description="Previous turns of the conversation, oldest first",
    )

    @field_validator("query", mode="before")
    @classmethod
    def _query_to_text(cls, value: Any) -> str | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        return value if isinstance(value, str) else None

    @field_validator("history", mode="before")
    @classmethod
    def _null_history(cls, value: Any) -> Any:
        return [] if value is None else value

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "query": "Quantos fornecedores existem?",
                    "history": [],
                },
                {
                    "query": "divida esse valor por 12",
                    "history": [
                        {"sender": "user", "text": "Qual o total de despesas?"},
                        {"sender": "agent", "text": "O total é **R$ 120.000,00**."},
                    ],
                },
            ]
        }
    )
