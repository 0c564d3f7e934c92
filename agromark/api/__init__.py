# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - agent.py: Natural-language ledger questions + cache rebuild
#   - health.py: Local health check (no LLM calls)
# =============================================================================
