# =============================================================================
# Answer Synthesizer — Turn Retrieved Context into Mark's Reply
# =============================================================================
#
# Receives whatever the chosen strategy retrieved (SQL rows or ledger
# summary sentences), the original question and the conversation, and
# makes one LLM call that writes the final Portuguese answer.
#
# DESIGN DECISION: Context is passed as pretty-printed JSON. Both SQL rows
# and summary lists serialise naturally, and the model is told never to
# mention SQL or JSON in its reply.
#
# DESIGN DECISION: Integers are stringified before serialisation. Counts
# and sums come back from PostgreSQL as 64-bit values; a string keeps
# every digit regardless of how the prompt is read downstream. Decimals,
# dates and enums are stringified for the same reason and because
# json.dumps cannot encode them at all.
# =============================================================================

from __future__ import annotations

import datetime as dt
import enum
import json
import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from agromark.agents.router import MARK_PERSONA, render_history
from agromark.models.requests import ConversationTurn
from agromark.services.llm import LLMProvider, ask_llm

logger = logging.getLogger(__name__)


_ANSWER_PROMPT = """\
Sua tarefa é fornecer uma resposta clara e concisa em português para a \
pergunta original do usuário, com base no histórico da conversa e nos dados \
que foram consultados no banco de dados.

**HISTÓRICO DA CONVERSA:**
{history}

**PERGUNTA ORIGINAL DO USUÁRIO:**
"{query}"

**CONTEXTO (dados da sua "colheita" no banco):**
{context}

**Instruções para a Resposta:**
1. **Baseie sua resposta ESTRITAMENTE no CONTEXTO fornecido.** Não invente informações.
2. Incorpore a personalidade do Mark.
3. Formule uma resposta direta e clara. Não mencione SQL ou JSON. Aja como \
se você mesmo tivesse encontrado a informação.
4. Seja conciso e útil. Use negrito com asteriscos duplos (`**texto**`) \
para destacar informações importantes.
5. Responda sempre em português (Brasil).

**Resposta do Mark:**"""


def normalize_context(value: Any) -> Any:
    """
    Convert retrieved context into JSON-safe values.

    Integers (not bools), Decimals and UUID-like scalars become strings,
    dates become ISO-8601 strings, enums collapse to their value. Dicts,
    lists and tuples are converted recursively.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, enum.Enum):
        return normalize_context(value.value)
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime, dt.time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): normalize_context(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_context(v) for v in value]
    if isinstance(value, (str, float)):
        return value
    return str(value)


def build_answer_prompt(
    query: str,
    context: Any,
    history: Sequence[ConversationTurn],
) -> str:
    context_json = json.dumps(
        normalize_context(context), indent=2, ensure_ascii=False,
    )
    return _ANSWER_PROMPT.format(
        history=render_history(history),
        query=query,
        context=context_json,
    )


async def synthesize(
    query: str,
    context: Any,
    history: Sequence[ConversationTurn],
    llm: LLMProvider,
) -> str:
    """
    Write the final answer for `query` from `context`.

    Args:
        query: The user's original question.
        context: SQL rows (list of dicts) or ledger summaries (list of str).
        history: Conversation so far, oldest first.
        llm: Provider used for the single completion call.

    Returns:
        The model's reply, trimmed.
    """
    logger.info(
        "Synthesizing answer: %d context items",
        len(context) if isinstance(context, (list, tuple)) else 1,
    )
    return await ask_llm(
        llm, build_answer_prompt(query, context, history), system=MARK_PERSONA,
    )
