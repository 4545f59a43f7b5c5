"""Read-only access to the knowledge record store (SQLAlchemy async)."""
