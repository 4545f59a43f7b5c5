"""Engine and logging setup shared by the CLI commands."""

from __future__ import annotations

import logging

from dissent.config import settings
from dissent.detection.engine import ConflictEngine
from dissent.runtime import build_engine


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


def get_engine() -> ConflictEngine:
    """Engine built from the environment settings (DISSENT_*)."""
    return build_engine(settings)
