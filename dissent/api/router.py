"""Top-level FastAPI APIRouter for the Dissent REST API (v1).

Prefix:  /api/v1
Tags:    ["rest-api"]

Sub-routers included:
- conflicts_router — /api/v1/conflicts (ledger queries, resolve/dismiss, scans)
"""

from __future__ import annotations

from fastapi import APIRouter

from dissent.api.routes.conflicts import conflicts_router

api_router = APIRouter(prefix="/api/v1", tags=["rest-api"])

api_router.include_router(conflicts_router)
