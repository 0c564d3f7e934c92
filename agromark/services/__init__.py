# =============================================================================
# Services Package — Infrastructure Clients
# =============================================================================
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - embedder.py: OpenAI-compatible embedding generation (batch + query)
#   - ledger_store.py: Read access to the ledger (typed rows, raw SQL)
#   - sql_guard.py: Read-only allow-list validation for generated SQL
#   - embedding_cache.py: In-process snapshot cache of ledger embeddings
# =============================================================================
