"""Shared logging helpers for teamsync."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "TEAMSYNC_LOG_LEVEL"


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    The level defaults to INFO and can be overridden through ``TEAMSYNC_LOG_LEVEL``
    (a level name such as ``DEBUG``). Pass ``force=True`` to reconfigure during
    tests or specialised entry points.
    """

    if level is None:
        name = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper()
        resolved = logging.getLevelName(name)
        level = resolved if isinstance(resolved, int) else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # request-level noise from the HTTP stack is only useful when debugging
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
