# =============================================================================
# LangGraph Orchestrator — Ledger Agent Graph Assembly
# =============================================================================
#
# Wires the router, the two retrieval strategies and the synthesizer into
# a LangGraph StateGraph and exposes the single entry point used by the
# HTTP layer: answer_query().
#
# GRAPH TOPOLOGY:
#
#                  ┌──▶ sql ──────────┐
#   START ──▶ route ┼──▶ semantic ──┬──▶ synthesize ──▶ END
#                  │                └──▶ END  (empty cache message)
#                  └──▶ END  (direct answer written by the router)
#
# At most three LLM calls per question (route, SQL, synthesize), plus one
# embedding call on the semantic path and one embedding batch when the
# cache needs rebuilding.
#
# DESIGN DECISION: answer_query() never raises. Every failure becomes a
# Portuguese answer string: a SQL refusal returns its fixed message,
# anything else returns "Ocorreu um erro ao processar sua pergunta: ...".
#
# DESIGN DECISION: Strategies are injected. LedgerAgent is built once
# (lazily) from settings for the app; tests build it from fakes.
#
# DESIGN DECISION: Plain TypedDict state (not MessagesState). History is
# supplied by the caller on every request and rendered into prompts; the
# graph keeps no conversation memory of its own.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from agromark.agents.router import Action, Decision, decide
from agromark.agents.semantic import SemanticStrategy
from agromark.agents.sql import SqlStrategy
from agromark.agents.synthesizer import synthesize
from agromark.config import settings
from agromark.errors import SqlSynthesisError
from agromark.models.requests import ConversationTurn
from agromark.services.embedder import get_embedder
from agromark.services.embedding_cache import CacheSnapshot, EmbeddingCache
from agromark.services.ledger_store import SqlAlchemyLedgerStore
from agromark.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)

GENERIC_ERROR_PREFIX = "Ocorreu um erro ao processar sua pergunta: "


# ---------------------------------------------------------------------------
# Agent State Schema
# ---------------------------------------------------------------------------


class AgentState(TypedDict, total=False):
    """
    State that flows through the graph.

    total=False so nodes only return the keys they update.
    """

    # --- Input ---
    query: str
    history: list[ConversationTurn]

    # --- Intermediate ---
    decision: Decision
    sql: str
    context: Any  # SQL rows or ledger summaries

    # --- Output ---
    answer: str


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class LedgerAgent:
    """
    Answers natural-language questions about the AgroMark ledger.

    Args:
        llm: Provider for routing and answer synthesis.
        sql_strategy: Exact-figure retrieval.
        semantic_strategy: Descriptive retrieval over the embedding cache.
    """

    def __init__(
        self,
        llm: LLMProvider,
        sql_strategy: SqlStrategy,
        semantic_strategy: SemanticStrategy,
    ) -> None:
        self._llm = llm
        self._sql = sql_strategy
        self._semantic = semantic_strategy
        self._graph = self._build_graph()

    # -- Nodes --------------------------------------------------------------

    async def _route_node(self, state: AgentState) -> dict:
        decision = await decide(state["query"], state["history"], self._llm)
        update: dict[str, Any] = {"decision": decision}
        if decision.action is Action.DIRECT_ANSWER:
            update["answer"] = decision.answer
        return update

    async def _sql_node(self, state: AgentState) -> dict:
        sql, rows = await self._sql.retrieve(state["query"])
        return {"sql": sql, "context": rows}

    async def _semantic_node(self, state: AgentState) -> dict:
        result = await self._semantic.search(state["query"])
        if isinstance(result, str):
            return {"answer": result}
        return {"context": result}

    async def _synthesize_node(self, state: AgentState) -> dict:
        answer = await synthesize(
            state["query"], state["context"], state["history"], self._llm,
        )
        return {"answer": answer}

    # -- Edges --------------------------------------------------------------

    @staticmethod
    def _after_route(state: AgentState) -> str:
        action = state["decision"].action
        if action is Action.SQL:
            return "sql"
        if action is Action.SEMANTIC_SEARCH:
            return "semantic"
        return "done"

    @staticmethod
    def _after_semantic(state: AgentState) -> str:
        return "done" if "answer" in state else "synthesize"

    def _build_graph(self):
        builder = StateGraph(AgentState)
        builder.add_node("route", self._route_node)
        builder.add_node("sql", self._sql_node)
        builder.add_node("semantic", self._semantic_node)
        builder.add_node("synthesize", self._synthesize_node)

        builder.add_edge(START, "route")
        builder.add_conditional_edges(
            "route",
            self._after_route,
            {"sql": "sql", "semantic": "semantic", "done": END},
        )
        builder.add_edge("sql", "synthesize")
        builder.add_conditional_edges(
            "semantic",
            self._after_semantic,
            {"synthesize": "synthesize", "done": END},
        )
        builder.add_edge("synthesize", END)
        return builder.compile()

    # -- Public API ---------------------------------------------------------

    async def answer_query(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        """
        Answer `query` in the context of `history`.

        Never raises; errors are returned as answer strings.
        """
        initial_state: AgentState = {"query": query, "history": list(history)}

        logger.info(
            "Invoking ledger agent: query='%s', history=%d turns",
            query[:80], len(initial_state["history"]),
        )

        try:
            result = await self._graph.ainvoke(initial_state)
        except SqlSynthesisError as e:
            return str(e)
        except Exception as e:
            logger.exception("Ledger agent failed for query '%s'", query[:80])
            return f"{GENERIC_ERROR_PREFIX}{e}"

        decision = result.get("decision")
        logger.info(
            "Ledger agent complete: action=%s",
            decision.action.value if decision else "n/a",
        )
        return result["answer"]

    async def rebuild_cache(self, force: bool = True) -> CacheSnapshot:
        """Rebuild the embedding cache (forced by default)."""
        return await self._semantic.rebuild_cache(force=force)

    @property
    def cache_ttl(self) -> float:
        return self._semantic.cache.ttl


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

# Lazy singleton — the embedding cache must survive across requests
_agent: LedgerAgent | None = None


def get_ledger_agent() -> LedgerAgent:
    """
    Build (once) the agent wired to the configured providers and database.

    Raises:
        ValueError: If the LLM or embedding API key is missing.
    """
    global _agent
    if _agent is None:
        llm = get_llm_provider()
        embedder = get_embedder()
        store = SqlAlchemyLedgerStore()
        cache = EmbeddingCache(
            store=store,
            embedder=embedder,
            ttl_seconds=settings.embedding_cache_ttl_seconds,
        )
        _agent = LedgerAgent(
            llm=llm,
            sql_strategy=SqlStrategy(llm=llm, store=store),
            semantic_strategy=SemanticStrategy(
                cache=cache, embedder=embedder, top_k=settings.semantic_top_k,
            ),
        )
        logger.info("Ledger agent initialised")
    return _agent


async def answer_query(
    query: str,
    history: Sequence[ConversationTurn] = (),
    agent: LedgerAgent | None = None,
) -> str:
    """
    Module-level entry point: answer with `agent` or the app singleton.

    Like LedgerAgent.answer_query() this never raises; a failure to build
    the singleton (e.g. a missing API key) is returned as an answer too.
    """
    if agent is None:
        try:
            agent = get_ledger_agent()
        except Exception as e:
            logger.exception("Could not initialise ledger agent")
            return f"{GENERIC_ERROR_PREFIX}{e}"
    return await agent.answer_query(query, history)
