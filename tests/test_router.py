# =============================================================================
# Unit Tests — Decision Router
# =============================================================================

from __future__ import annotations

from agromark.agents.router import (
    MARK_PERSONA,
    Action,
    build_decision_prompt,
    decide,
    parse_decision,
    render_history,
)
from agromark.models.requests import ConversationTurn
from tests.conftest import make_llm, prompt_of, run


# ---------------------------------------------------------------------------
# Test: Parsing
# ---------------------------------------------------------------------------


class TestParseDecision:
    """Tests for mapping model output onto an action."""

    def test_sql_marker(self):
        assert parse_decision("[SQL]").action is Action.SQL

    def test_semantic_marker(self):
        decision = parse_decision("  [BUSCA_SEMANTICA]\n")
        assert decision.action is Action.SEMANTIC_SEARCH
        assert decision.answer is None

    def test_sql_wins_when_both_markers_present(self):
        decision = parse_decision("[BUSCA_SEMANTICA] ou [SQL]?")
        assert decision.action is Action.SQL

    def test_direct_answer_strips_marker(self):
        decision = parse_decision(
            "[RESPOSTA_DIRETA] Olá! Eu sou o Mark, pronto para a colheita."
        )
        assert decision.action is Action.DIRECT_ANSWER
        assert decision.answer == "Olá! Eu sou o Mark, pronto para a colheita."

    def test_unmarked_text_is_direct_answer(self):
        decision = parse_decision("Dividindo por 12 dá **R$ 10.000,00**.")
        assert decision.action is Action.DIRECT_ANSWER
        assert decision.answer == "Dividindo por 12 dá **R$ 10.000,00**."

    def test_marker_only_keeps_raw_text(self):
        decision = parse_decision("[RESPOSTA_DIRETA]")
        assert decision.action is Action.DIRECT_ANSWER
        assert decision.answer == "[RESPOSTA_DIRETA]"


# ---------------------------------------------------------------------------
# Test: Prompt Construction
# ---------------------------------------------------------------------------


class TestDecisionPrompt:
    """Tests for history rendering and the routing prompt."""

    def test_render_history_labels_senders(self):
        history = [
            ConversationTurn(sender="user", text="Qual o total de despesas?"),
            ConversationTurn(sender="agent", text="O total é **R$ 120.000,00**."),
        ]
        assert render_history(history) == (
            "Usuário: Qual o total de despesas?\n"
            "Assistente: O total é **R$ 120.000,00**."
        )

    def test_empty_history(self):
        assert render_history([]) == ""

    def test_prompt_contains_query_and_markers(self):
        prompt = build_decision_prompt("Quantos fornecedores existem?", [])
        assert '"Quantos fornecedores existem?"' in prompt
        assert "[SQL]" in prompt
        assert "[BUSCA_SEMANTICA]" in prompt
        assert "[RESPOSTA_DIRETA]" in prompt

    def test_query_with_braces_is_kept_verbatim(self):
        prompt = build_decision_prompt("o que é {isso}?", [])
        assert "o que é {isso}?" in prompt


# ---------------------------------------------------------------------------
# Test: decide() with Mock LLM
# ---------------------------------------------------------------------------


class TestDecide:
    """Tests for the router's single LLM call."""

    def test_sends_history_to_llm(self):
        llm = make_llm("[RESPOSTA_DIRETA] Dá **R$ 10.000,00** por mês.")
        history = [
            ConversationTurn(sender="user", text="Qual o total de despesas?"),
            ConversationTurn(sender="agent", text="O total é R$ 120.000,00."),
        ]

        decision = run(decide("divida esse valor por 12", history, llm))

        assert decision.action is Action.DIRECT_ANSWER
        assert decision.answer == "Dá **R$ 10.000,00** por mês."
        llm.complete.assert_called_once()
        prompt = prompt_of(llm, 0)
        assert "Usuário: Qual o total de despesas?" in prompt
        assert "Assistente: O total é R$ 120.000,00." in prompt

    def test_routes_to_sql(self):
        llm = make_llm("[SQL]")
        decision = run(decide("Quantos fornecedores existem?", [], llm))
        assert decision.action is Action.SQL

    def test_persona_is_system_prompt_at_zero_temperature(self):
        llm = make_llm("[SQL]")

        run(decide("Quantos fornecedores existem?", [], llm))

        kwargs = llm.complete.call_args.kwargs
        assert kwargs["system"] == MARK_PERSONA
        assert kwargs["temperature"] == 0.0
        assert "Você é o Mark" not in prompt_of(llm, 0)
