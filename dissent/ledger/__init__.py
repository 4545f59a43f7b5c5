"""Conflict ledger and its storage adapters."""

from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import MemoryConflictStore, RedisConflictStore

__all__ = ["ConflictLedger", "MemoryConflictStore", "RedisConflictStore"]
