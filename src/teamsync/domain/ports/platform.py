"""Ports implemented by platform adapters.

Readers snapshot live state for exactly the entities the desired state names;
writers replay individual actions and must be idempotent: applying an action
whose goal already holds is a no-op, never an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation
    from teamsync.domain.model import (
        Committed,
        GitHubDesired,
        GitHubLive,
        ZulipDesired,
        ZulipLive,
    )


@runtime_checkable
class GitHubReader(Protocol):
    def snapshot(self, desired: GitHubDesired) -> GitHubLive: ...


@runtime_checkable
class ZulipReader(Protocol):
    def snapshot(self, desired: ZulipDesired) -> ZulipLive: ...


@runtime_checkable
class ActionWriter(Protocol):
    """Write operations for one platform, one method per action variant."""

    def create(self, action: CreateEntity) -> Committed: ...

    def edit(self, action: EditField) -> None: ...

    def add_relation(self, action: AddRelation) -> None: ...

    def remove_relation(self, action: RemoveRelation) -> None: ...
