# =============================================================================
# Decision Router — Pick a Strategy for One Question
# =============================================================================
#
# One LLM call classifies the user's question (in the context of the
# conversation so far) into one of three actions:
#
#   [SQL]               — exact figures: sums, counts, averages, rankings
#   [BUSCA_SEMANTICA]   — open/descriptive questions ("fale sobre ...")
#   [RESPOSTA_DIRETA]   — greetings, small talk, follow-ups answerable
#                          from the history ("divida esse valor por 12")
#
# For the direct branch the model writes the reply itself, right after
# the marker, so no second call is needed.
#
# PARSING (see parse_decision):
#   1. contains [SQL]              → SQL
#   2. contains [BUSCA_SEMANTICA]  → semantic search
#   3. anything else               → direct answer, with a leading
#      [RESPOSTA_DIRETA] marker stripped if present
#
# DESIGN DECISION: SQL wins over semantic search when a response carries
# both markers, and any unmarked text is treated as the direct answer.
# Models occasionally forget the direct-reply marker; refusing to answer
# in that case would be worse than trusting the text.
# =============================================================================

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from agromark.models.requests import ConversationTurn
from agromark.services.llm import LLMProvider, ask_llm

logger = logging.getLogger(__name__)

SQL_MARKER = "[SQL]"
SEMANTIC_SEARCH_MARKER = "[BUSCA_SEMANTICA]"
DIRECT_ANSWER_MARKER = "[RESPOSTA_DIRETA]"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


class Action(str, enum.Enum):
    SQL = "sql"
    SEMANTIC_SEARCH = "semantic_search"
    DIRECT_ANSWER = "direct_answer"


@dataclass(frozen=True)
class Decision:
    """
    Parsed router output.

    `answer` is only set for DIRECT_ANSWER; `raw` always holds the
    trimmed model text for logging.
    """

    action: Action
    raw: str
    answer: str | None = None


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

# Sent as the system prompt of every user-facing completion
MARK_PERSONA = (
    "Você é o Mark, o mascote inteligente do sistema AgroMark. Sua "
    "personalidade é curiosa, paciente e um pouco nerd, e você adora "
    "analogias agrícolas. Seu tom de voz é didático, amistoso e direto."
)

# Classification must be repeatable
DECISION_TEMPERATURE = 0.0

_DECISION_PROMPT = """\
Você tem três ferramentas:
1. **[SQL]**: Para perguntas que exigem CÁLCULOS ou DADOS EXATOS do banco \
(soma, contagem, média, etc.).
2. **[BUSCA_SEMANTICA]**: Para perguntas ABERTAS ou DESCRITIVAS \
(Ex: "fale sobre...", "encontre notas relacionadas a...").
3. **[RESPOSTA_DIRETA]**: Para saudações, conversas ou perguntas de \
ACOMPANHAMENTO que podem ser respondidas com o histórico.

**HISTÓRICO DA CONVERSA:**
{history}

**PERGUNTA ATUAL DO USUÁRIO:**
"{query}"

**INSTRUÇÕES:**
1. Analise a pergunta atual no contexto do histórico.
2. **DECIDA A AÇÃO:**
   * Se for um cálculo ou busca por dados exatos -> Responda APENAS com a tag: [SQL]
   * Se for uma busca por descrição ou conceito -> Responda APENAS com a tag: [BUSCA_SEMANTICA]
   * Se for uma saudação ou um cálculo simples baseado no histórico \
(Ex: "divida esse valor por 12") -> Responda com a tag [RESPOSTA_DIRETA] \
seguida da sua resposta, no tom do Mark.

**SUA RESPOSTA:**"""


def render_history(history: Sequence[ConversationTurn]) -> str:
    """Render turns as `Usuário: ...` / `Assistente: ...` lines."""
    return "\n".join(
        f"{'Usuário' if turn.sender == 'user' else 'Assistente'}: {turn.text}"
        for turn in history
    )


def build_decision_prompt(
    query: str,
    history: Sequence[ConversationTurn],
) -> str:
    return _DECISION_PROMPT.format(
        history=render_history(history),
        query=query,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_decision(raw: str) -> Decision:
    """Map free-form router output onto an Action."""
    text = raw.strip()

    if SQL_MARKER in text:
        return Decision(action=Action.SQL, raw=text)

    if SEMANTIC_SEARCH_MARKER in text:
        return Decision(action=Action.SEMANTIC_SEARCH, raw=text)

    answer = text
    if DIRECT_ANSWER_MARKER in answer:
        answer = answer.replace(DIRECT_ANSWER_MARKER, "", 1).strip()

    return Decision(
        action=Action.DIRECT_ANSWER,
        raw=text,
        answer=answer or text,
    )


async def decide(
    query: str,
    history: Sequence[ConversationTurn],
    llm: LLMProvider,
) -> Decision:
    """
    Ask the model which strategy answers `query` best.

    Transport and model errors propagate to the caller.
    """
    raw = await ask_llm(
        llm,
        build_decision_prompt(query, history),
        system=MARK_PERSONA,
        temperature=DECISION_TEMPERATURE,
    )
    decision = parse_decision(raw)

    logger.info(
        "Router decision: %s (query: '%s')",
        decision.action.value, query[:80],
    )
    return decision
