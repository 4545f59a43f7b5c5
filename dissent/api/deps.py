"""FastAPI dependencies for the Dissent REST API."""

from __future__ import annotations

from functools import lru_cache

from dissent.config import settings
from dissent.detection.engine import ConflictEngine
from dissent.runtime import build_engine


@lru_cache(maxsize=1)
def _default_engine() -> ConflictEngine:
    return build_engine(settings)


def get_engine() -> ConflictEngine:
    """Process-wide engine. Override with ``app.dependency_overrides`` in tests."""
    return _default_engine()
