"""Conflict ledger REST endpoints.

Endpoints:
- GET  /conflicts                  — list conflicts (filter by status, topic or record)
- GET  /conflicts/open             — open conflicts, high severity first
- GET  /conflicts/stats            — counts by status and severity
- GET  /conflicts/{id}             — one conflict
- POST /conflicts/{id}/resolve     — resolve with keep_newer | keep_older | keep_both | custom
- POST /conflicts/{id}/dismiss     — dismiss as spurious
- POST /conflicts/scan             — run a full scan and store new conflicts
- POST /conflicts/check/{record_id} — check one record against the corpus

Unknown ids return 404, an invalid resolution or a malformed stored record 422, and a conflict store that
cannot be written 503.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from dissent.api.deps import get_engine
from dissent.detection.engine import ConflictEngine
from dissent.exceptions import LedgerError
from dissent.models import (
    Conflict,
    ConflictStats,
    ConflictStatus,
    KnowledgeRecord,
    Resolution,
    ScanResult,
)

logger = logging.getLogger(__name__)

conflicts_router = APIRouter(prefix="/conflicts", tags=["conflicts"])

EngineDep = Annotated[ConflictEngine, Depends(get_engine)]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ResolveRequest(BaseModel):
    """Request body for POST /conflicts/{id}/resolve."""

    resolution: str
    note: str = ""


class ScanRequest(BaseModel):
    """Request body for POST /conflicts/scan. Omitted fields use the settings."""

    max_candidates: int | None = Field(default=None, ge=1, le=500)
    heuristic_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class CheckRequest(BaseModel):
    """Request body for POST /conflicts/check/{record_id}."""

    use_ai: bool = True


def _not_found(conflict_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Conflict '{conflict_id}' not found.")


def _store_unavailable(exc: LedgerError) -> HTTPException:
    logger.error("Conflicts API: %s", exc)
    return HTTPException(status_code=503, detail="Conflict store unavailable.")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@conflicts_router.get(
    "",
    response_model=list[Conflict],
    operation_id="list_conflicts",
    summary="List conflicts",
    description=(
        "Returns every stored conflict, newest first when filtered. "
        "Filter by status, or by topic or record on either side of the pair."
    ),
)
async def list_conflicts(
    engine: EngineDep,
    status: Annotated[ConflictStatus | None, Query(description="open, resolved or dismissed")] = None,
    topic_id: Annotated[str | None, Query(description="Topic on either side")] = None,
    record_id: Annotated[str | None, Query(description="Record on either side")] = None,
) -> list[Conflict]:
    ledger = engine.ledger
    if topic_id:
        conflicts = await ledger.list_for_topic(topic_id)
    elif record_id:
        conflicts = await ledger.list_for_record(record_id)
    else:
        conflicts = await ledger.list_all()
    if status is not None:
        conflicts = [c for c in conflicts if c.status == status]
    return conflicts


@conflicts_router.get(
    "/open",
    response_model=list[Conflict],
    operation_id="list_open_conflicts",
    summary="List open conflicts",
    description="Open conflicts sorted by severity (high first), then most recently detected.",
)
async def list_open_conflicts(engine: EngineDep) -> list[Conflict]:
    return await engine.ledger.list_open()


@conflicts_router.get(
    "/stats",
    response_model=ConflictStats,
    operation_id="get_conflict_stats",
    summary="Conflict counts by status and severity",
)
async def get_conflict_stats(engine: EngineDep) -> ConflictStats:
    return await engine.ledger.stats()


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------


@conflicts_router.post(
    "/scan",
    response_model=ScanResult,
    operation_id="run_conflict_scan",
    summary="Run a full conflict scan",
    description=(
        "Runs heuristic discovery over the whole corpus, verifies the best new "
        "candidates with the judge (or falls back to heuristic-only acceptance) "
        "and stores the confirmed conflicts. Pairs already in the ledger are skipped."
    ),
)
async def run_conflict_scan(engine: EngineDep, body: ScanRequest | None = None) -> ScanResult:
    body = body or ScanRequest()
    return await engine.run_full_scan(
        max_candidates=body.max_candidates,
        heuristic_threshold=body.heuristic_threshold,
    )


@conflicts_router.post(
    "/check/{record_id}",
    response_model=list[Conflict],
    operation_id="check_record_conflicts",
    summary="Check one record against existing knowledge",
    description="Returns the conflicts newly stored for the record. 404 if the record is unknown.",
)
async def check_record_conflicts(
    record_id: str,
    engine: EngineDep,
    body: CheckRequest | None = None,
) -> list[Conflict]:
    body = body or CheckRequest()
    try:
        rows = await engine.records.get_all("records")
    except Exception as exc:
        logger.error("Conflicts API: record store unavailable — %s", exc)
        raise HTTPException(status_code=503, detail="Record store unavailable.") from exc
    row = next((r for r in rows if r.get("id") == record_id), None)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Record '{record_id}' not found.")
    try:
        record = KnowledgeRecord.model_validate(row)
    except ValidationError as exc:
        logger.warning("Conflicts API: record %s is malformed: %s", record_id, exc)
        raise HTTPException(status_code=422, detail=f"Record '{record_id}' is malformed.") from exc
    return await engine.check_new_record(record, use_ai=body.use_ai)


# ---------------------------------------------------------------------------
# Single conflict
# ---------------------------------------------------------------------------


@conflicts_router.get(
    "/{conflict_id}",
    response_model=Conflict,
    operation_id="get_conflict",
    summary="Get one conflict",
)
async def get_conflict(conflict_id: str, engine: EngineDep) -> Conflict:
    conflict = await engine.ledger.get(conflict_id)
    if conflict is None:
        raise _not_found(conflict_id)
    return conflict


@conflicts_router.post(
    "/{conflict_id}/resolve",
    response_model=Conflict,
    operation_id="resolve_conflict",
    summary="Resolve a conflict",
    description=(
        "Marks the conflict resolved. resolution must be one of "
        "keep_newer, keep_older, keep_both or custom."
    ),
)
async def resolve_conflict(conflict_id: str, body: ResolveRequest, engine: EngineDep) -> Conflict:
    valid = {r.value for r in Resolution}
    if body.resolution not in valid:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid resolution '{body.resolution}'. Expected one of: {', '.join(sorted(valid))}.",
        )
    try:
        conflict = await engine.ledger.resolve(conflict_id, body.resolution, body.note)
    except LedgerError as exc:
        raise _store_unavailable(exc) from exc
    if conflict is None:
        raise _not_found(conflict_id)
    return conflict


@conflicts_router.post(
    "/{conflict_id}/dismiss",
    response_model=Conflict,
    operation_id="dismiss_conflict",
    summary="Dismiss a conflict as spurious",
)
async def dismiss_conflict(conflict_id: str, engine: EngineDep) -> Conflict:
    try:
        conflict = await engine.ledger.dismiss(conflict_id)
    except LedgerError as exc:
        raise _store_unavailable(exc) from exc
    if conflict is None:
        raise _not_found(conflict_id)
    return conflict
