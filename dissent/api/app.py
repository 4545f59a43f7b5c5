"""FastAPI application for Dissent: /health plus the /api/v1 REST routes.

Run with:
    uvicorn dissent.api.app:app
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from dissent import __version__
from dissent.api.router import api_router

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate deterministic, SDK-friendly operation IDs for REST routes."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


def create_app() -> FastAPI:
    app = FastAPI(
        title="Dissent",
        description="Contradiction mining for a personal knowledge base — REST API",
        version=__version__,
        generate_unique_id_function=custom_generate_unique_id,
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        """Simple health check endpoint for load balancers and readiness probes."""
        return JSONResponse({"status": "ok", "service": "dissent"})

    # Mounted AFTER /health so it does not shadow the health endpoint.
    app.include_router(api_router)
    return app


app = create_app()
