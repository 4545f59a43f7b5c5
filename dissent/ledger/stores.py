"""Conflict store adapters: one list-valued blob under a single key.

The ledger reads the whole list and writes the whole list back. Stores know
nothing about the Conflict schema; they move plain JSON-compatible dicts.

- ``RedisConflictStore`` keeps the list as a JSON string in Redis (redis.asyncio).
- ``MemoryConflictStore`` keeps it in process, for tests and one-off CLI runs.
"""

from __future__ import annotations

import copy
import json
from typing import Any

import redis.asyncio as aioredis


class MemoryConflictStore:
    """In-process conflict store. Stores deep copies so callers cannot alias it."""

    def __init__(self, conflicts: list[dict[str, Any]] | None = None) -> None:
        self._conflicts: list[dict[str, Any]] = copy.deepcopy(conflicts or [])
        self.writes = 0

    async def get(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._conflicts)

    async def set(self, conflicts: list[dict[str, Any]]) -> None:
        self._conflicts = copy.deepcopy(conflicts)
        self.writes += 1


class RedisConflictStore:
    """Conflict list stored as a JSON array under one Redis key.

    Args:
        client: An ``redis.asyncio.Redis`` connection created with
                ``decode_responses=True``.
        key:    The key holding the list (``settings.conflicts_key``).
    """

    def __init__(self, client: aioredis.Redis, key: str = "conflicts") -> None:
        self.client = client
        self.key = key

    @classmethod
    def from_url(cls, redis_url: str, key: str = "conflicts") -> "RedisConflictStore":
        """Build a store from a connection string, e.g. ``settings.redis_url``."""
        client = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        return cls(client, key)

    async def get(self) -> list[dict[str, Any]]:
        """The stored list. A key holding anything else raises ValueError
        rather than being overwritten by the next write."""
        raw = await self.client.get(self.key)
        if not raw:
            return []
        value = json.loads(raw)
        if not isinstance(value, list):
            raise ValueError(f"key '{self.key}' holds {type(value).__name__}, expected a list")
        return value

    async def set(self, conflicts: list[dict[str, Any]]) -> None:
        await self.client.set(self.key, json.dumps(conflicts))

    async def close(self) -> None:
        await self.client.aclose()
