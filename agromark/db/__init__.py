# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, session management, and the ORM
# models describing the AgroMark ledger schema.
# =============================================================================
