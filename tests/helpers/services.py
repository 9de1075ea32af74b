"""In-memory stand-ins for the sync ports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from teamsync.domain.model import Committed

if TYPE_CHECKING:
    from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation
    from teamsync.domain.model import DesiredState


@dataclass
class FakeTeamSource:
    state: DesiredState
    loads: int = 0

    def load(self) -> DesiredState:
        self.loads += 1
        return self.state


@dataclass
class StaticReader[Desired, Live]:
    live: Live
    seen: list[Desired] = field(default_factory=list)

    def snapshot(self, desired: Desired) -> Live:
        self.seen.append(desired)
        return self.live


@dataclass
class FailingReader:
    error: Exception

    def snapshot(self, desired: object) -> object:
        raise self.error


@dataclass
class RecordingWriter:
    calls: list[str] = field(default_factory=list)

    def create(self, action: CreateEntity) -> Committed:
        self.calls.append(action.describe())
        return Committed(f"id-{action.creates}")

    def edit(self, action: EditField) -> None:
        self.calls.append(action.describe())

    def add_relation(self, action: AddRelation) -> None:
        self.calls.append(action.describe())

    def remove_relation(self, action: RemoveRelation) -> None:
        self.calls.append(action.describe())


@dataclass
class FakeChannel:
    messages: list[str] = field(default_factory=list)

    def publish(self, message: str) -> None:
        self.messages.append(message)
