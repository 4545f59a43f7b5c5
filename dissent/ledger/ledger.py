"""Conflict ledger: durable CRUD, lifecycle and queries over a ConflictStore.

The store holds one list. Every mutation is read-all, modify, write-all; an
update by id is a linear scan. That is fine for a personal knowledge base but is
the first thing to index if the corpus grows.

Lifecycle:
  open ──resolve(resolution)──▶ resolved
  open ──dismiss()────────────▶ dismissed

Conflicts are never deleted. Resolved and dismissed ones stay for audit and
only drop out of the ``list_open`` view.

Failure policy:
  - read failures on query paths   → logged, empty result
  - unknown id / invalid input     → warning, ``None``, no write
  - write failures                 → ``LedgerError``
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from dissent.exceptions import LedgerError
from dissent.interfaces import ConflictStore
from dissent.models import (
    SEVERITY_RANK,
    Conflict,
    ConflictKey,
    ConflictStats,
    ConflictStatus,
    Resolution,
    Severity,
    utcnow,
)

logger = logging.getLogger(__name__)


def _newest_first(conflicts: list[Conflict]) -> list[Conflict]:
    return sorted(conflicts, key=lambda c: c.detected_at, reverse=True)


class ConflictLedger:
    """The durable store of confirmed conflicts and their resolution lifecycle.

    Args:
        store: Any ConflictStore (Redis in production, in-memory in tests).
    """

    def __init__(self, store: ConflictStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    async def _read_raw(self) -> list[dict[str, Any]]:
        try:
            return await self.store.get()
        except Exception as exc:
            raise LedgerError(f"could not read conflict store: {exc}") from exc

    async def _write_raw(self, rows: list[dict[str, Any]]) -> None:
        try:
            await self.store.set(rows)
        except Exception as exc:
            raise LedgerError(f"could not write conflict store: {exc}") from exc

    @staticmethod
    def _parse(rows: list[dict[str, Any]]) -> list[Conflict]:
        conflicts = []
        for row in rows:
            try:
                conflicts.append(Conflict.model_validate(row))
            except ValidationError as exc:
                logger.warning(
                    "Ledger: skipping malformed conflict %s — %s",
                    row.get("id") if isinstance(row, dict) else row,
                    exc,
                )
        return conflicts

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, conflict: Conflict) -> Conflict:
        """Append *conflict* to the ledger.

        Raises:
            LedgerError: If the store cannot be read or written.
        """
        rows = await self._read_raw()
        rows.append(conflict.model_dump(mode="json"))
        await self._write_raw(rows)
        logger.info(
            "Ledger: stored %s conflict %s (%s → %s)",
            conflict.severity.value,
            conflict.id,
            conflict.older_record_id,
            conflict.newer_record_id,
        )
        return conflict

    async def update(self, conflict_id: str, patch: dict[str, Any]) -> Conflict | None:
        """Apply *patch* to the conflict with *conflict_id*.

        The patched conflict is re-validated, so a patch that breaks an
        invariant (e.g. a resolution on an open conflict) is rejected.

        Returns:
            The updated Conflict, or None when the id is unknown or the patch
            is invalid. Nothing is written in either case.

        Raises:
            LedgerError: If the store cannot be read or written.
        """
        rows = await self._read_raw()
        for index, row in enumerate(rows):
            if not isinstance(row, dict) or row.get("id") != conflict_id:
                continue
            try:
                updated = Conflict.model_validate({**row, **patch})
            except ValidationError as exc:
                logger.warning("Ledger: rejected update for conflict %s — %s", conflict_id, exc)
                return None
            rows[index] = updated.model_dump(mode="json")
            await self._write_raw(rows)
            return updated

        logger.warning("Ledger: conflict %s not found — nothing updated", conflict_id)
        return None

    async def resolve(
        self,
        conflict_id: str,
        resolution: Resolution | str,
        note: str = "",
    ) -> Conflict | None:
        """Mark a conflict resolved with one of the four resolutions.

        Returns:
            The resolved Conflict, or None (with a warning and no write) when
            the id is empty or unknown or *resolution* is not a valid value.
        """
        if not conflict_id:
            logger.warning("Ledger: resolve called without a conflict id")
            return None
        try:
            resolution = Resolution(resolution)
        except ValueError:
            logger.warning(
                "Ledger: invalid resolution '%s' — expected one of %s",
                resolution,
                ", ".join(r.value for r in Resolution),
            )
            return None

        return await self.update(
            conflict_id,
            {
                "status": ConflictStatus.RESOLVED,
                "resolution": resolution,
                "resolution_note": note or None,
                "resolved_at": utcnow(),
            },
        )

    async def dismiss(self, conflict_id: str) -> Conflict | None:
        """Mark a conflict as spurious. Returns None when the id is unknown."""
        if not conflict_id:
            logger.warning("Ledger: dismiss called without a conflict id")
            return None
        return await self.update(
            conflict_id,
            {"status": ConflictStatus.DISMISSED, "resolved_at": utcnow()},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_all(self) -> list[Conflict]:
        """Every conflict in storage order. A failing store yields []."""
        try:
            rows = await self._read_raw()
        except LedgerError as exc:
            logger.error("Ledger: %s", exc)
            return []
        return self._parse(rows)

    async def get(self, conflict_id: str) -> Conflict | None:
        for conflict in await self.list_all():
            if conflict.id == conflict_id:
                return conflict
        return None

    async def list_open(self) -> list[Conflict]:
        """Open conflicts, high severity first, then most recently detected."""
        open_conflicts = [c for c in await self.list_all() if c.status == ConflictStatus.OPEN]
        return sorted(
            _newest_first(open_conflicts),
            key=lambda c: SEVERITY_RANK.get(c.severity, len(SEVERITY_RANK)),
        )

    async def list_for_topic(self, topic_id: str) -> list[Conflict]:
        if not topic_id:
            return []
        return _newest_first([
            c for c in await self.list_all()
            if c.older_topic_id == topic_id or c.newer_topic_id == topic_id
        ])

    async def list_for_record(self, record_id: str) -> list[Conflict]:
        if not record_id:
            return []
        return _newest_first([
            c for c in await self.list_all()
            if c.older_record_id == record_id or c.newer_record_id == record_id
        ])

    async def list_by_status(self, status: ConflictStatus | str) -> list[Conflict]:
        status = ConflictStatus(status)
        return _newest_first([c for c in await self.list_all() if c.status == status])

    async def stats(self) -> ConflictStats:
        """Counts by status and by severity across every stored conflict."""
        conflicts = await self.list_all()
        return ConflictStats(
            total=len(conflicts),
            open=sum(1 for c in conflicts if c.status == ConflictStatus.OPEN),
            resolved=sum(1 for c in conflicts if c.status == ConflictStatus.RESOLVED),
            dismissed=sum(1 for c in conflicts if c.status == ConflictStatus.DISMISSED),
            high_severity=sum(1 for c in conflicts if c.severity == Severity.HIGH),
            medium_severity=sum(1 for c in conflicts if c.severity == Severity.MEDIUM),
            low_severity=sum(1 for c in conflicts if c.severity == Severity.LOW),
        )

    async def existing_keys(self) -> set[ConflictKey]:
        """Dedup keys of every stored conflict, whatever its status."""
        return {c.key for c in await self.list_all()}
