"""Port for publishing plans to human reviewers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReviewChannel(Protocol):
    """Destination for proposed plans and approval outcomes (e.g. a chat topic)."""

    def publish(self, message: str) -> None: ...
