"""Team definitions source backed by a JSON document."""

from __future__ import annotations

from .loader import DOCUMENT_NAME, JsonTeamSource, TeamSourceError, translate_document
from .schema import TeamDocument

__all__ = [
    "DOCUMENT_NAME",
    "JsonTeamSource",
    "TeamDocument",
    "TeamSourceError",
    "translate_document",
]
