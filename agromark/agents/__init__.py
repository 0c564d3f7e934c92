# =============================================================================
# Agents Package — Ledger Question Answering
# =============================================================================
#   - router.py: LLM decision router (SQL / semantic search / direct reply)
#   - sql.py: text-to-SQL synthesis and guarded execution
#   - semantic.py: nearest-neighbour retrieval over the embedding cache
#   - synthesizer.py: final answer generation in the Mark persona
#   - orchestrator.py: LangGraph graph wiring the steps together
# =============================================================================
