# =============================================================================
# AgroMark Ledger Agent
# =============================================================================
# Answers natural-language questions about the AgroMark agribusiness ledger
# (supplier invoices, categories, instalments). A LangGraph agent routes
# each question to generated SQL, semantic search over embedded ledger
# summaries, or a direct reply, then synthesizes the final answer.
#
# Package structure:
#   agromark/
#   ├── api/          → FastAPI route handlers (agent query, health)
#   ├── agents/       → Routing, SQL and semantic strategies, synthesizer,
#   │                    LangGraph orchestrator
#   ├── db/           → Database engine, session, and ledger ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → LLM and embedding clients, ledger store,
#                        SQL guard, embedding cache
# =============================================================================
