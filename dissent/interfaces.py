"""Protocols for the external collaborators Dissent consumes.

The core only ever talks to these shapes. Concrete adapters live in
``dissent.db.records`` (record store), ``dissent.judge`` (judgment service) and
``dissent.ledger.stores`` (conflict store).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

Collection = Literal["records", "topics"]


@dataclass
class Completion:
    """A judge reply. ``content`` is untrusted text expected to hold JSON."""

    content: str
    model: str | None = None
    provider_type: str | None = None
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return int(self.usage.get("total_tokens", 0) or 0)


class RecordStore(Protocol):
    async def get_all(self, collection: Collection) -> list[dict[str, Any]]:
        """Every row of *collection* as a plain dict."""
        ...


class JudgeService(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        ...

    def has_enabled_provider(self) -> bool:
        ...


class ConflictStore(Protocol):
    async def get(self) -> list[dict[str, Any]]:
        """The whole conflict list (empty when nothing was stored yet)."""
        ...

    async def set(self, conflicts: list[dict[str, Any]]) -> None:
        """Replace the whole conflict list."""
        ...
