"""Port for loading desired state from the team definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from teamsync.domain.model import DesiredState


@runtime_checkable
class TeamSource(Protocol):
    """Supplies a typed snapshot of the desired organizations, teams and groups."""

    def load(self) -> DesiredState: ...
