"""Field-granular actions and the per-platform diff that orders them.

Every action is self-contained: it names the entity (and any related entity)
by ``EntityRef`` and carries the values it wants to reach, so re-applying it
against a platform that already matches is a no-op.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from teamsync.domain.model import Pending

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from teamsync.domain.model import EntityRef, Identity, Platform

type FieldValue = str | int | bool | tuple[str, ...] | None


class ActionOp(StrEnum):
    CREATE_ENTITY = "create_entity"
    EDIT_FIELD = "edit_field"
    ADD_RELATION = "add_relation"
    REMOVE_RELATION = "remove_relation"


def _render_value(value: FieldValue) -> str:
    if isinstance(value, tuple):
        return json.dumps(list(value))
    return json.dumps(value)


def _payload_value(value: FieldValue) -> object:
    if isinstance(value, tuple):
        return list(value)
    return value


@dataclass(frozen=True, slots=True, kw_only=True)
class Relation:
    """Related side of an add/remove action, with an optional role or permission."""

    target: EntityRef
    role: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"target": self.target.to_payload()}
        if self.role is not None:
            payload["role"] = self.role
        return payload


@dataclass(frozen=True, slots=True, kw_only=True)
class CreateEntity:
    entity: EntityRef
    fields: tuple[tuple[str, FieldValue], ...] = ()

    op: ClassVar[ActionOp] = ActionOp.CREATE_ENTITY

    @classmethod
    def of(cls, entity: EntityRef, fields: Mapping[str, FieldValue]) -> CreateEntity:
        return cls(entity=entity, fields=tuple(fields.items()))

    @property
    def creates(self) -> str:
        """Local key the created identity is registered under for later actions."""

        identity = self.entity.identity
        if isinstance(identity, Pending):
            return identity.local_key
        return self.entity.key

    def field_map(self) -> dict[str, FieldValue]:
        return dict(self.fields)

    def dependencies(self) -> tuple[str, ...]:
        # the created entity itself is pending by definition
        parent = self.entity.parent
        return parent.pending_keys() if parent is not None else ()

    def resolve(self, identities: dict[str, Identity]) -> CreateEntity:
        return replace(self, entity=self.entity.resolve(identities))

    def to_payload(self) -> dict[str, object]:
        return {
            "op": str(self.op),
            "entity": self.entity.to_payload(),
            "fields": [[name, _payload_value(value)] for name, value in self.fields],
        }

    def describe(self) -> str:
        rendered = ", ".join(f"{name}={_render_value(value)}" for name, value in self.fields)
        return f"create {self.entity} ({rendered})"


@dataclass(frozen=True, slots=True, kw_only=True)
class EditField:
    entity: EntityRef
    field: str
    old: FieldValue
    new: FieldValue

    op: ClassVar[ActionOp] = ActionOp.EDIT_FIELD

    def dependencies(self) -> tuple[str, ...]:
        return self.entity.pending_keys()

    def resolve(self, identities: dict[str, Identity]) -> EditField:
        return replace(self, entity=self.entity.resolve(identities))

    def to_payload(self) -> dict[str, object]:
        return {
            "op": str(self.op),
            "entity": self.entity.to_payload(),
            "field": self.field,
            "old": _payload_value(self.old),
            "new": _payload_value(self.new),
        }

    def describe(self) -> str:
        return (
            f"edit {self.entity}: {self.field} "
            f"{_render_value(self.old)} -> {_render_value(self.new)}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class AddRelation:
    entity: EntityRef
    related: Relation

    op: ClassVar[ActionOp] = ActionOp.ADD_RELATION

    def dependencies(self) -> tuple[str, ...]:
        return self.entity.pending_keys() + self.related.target.pending_keys()

    def resolve(self, identities: dict[str, Identity]) -> AddRelation:
        related = replace(self.related, target=self.related.target.resolve(identities))
        return replace(self, entity=self.entity.resolve(identities), related=related)

    def to_payload(self) -> dict[str, object]:
        return {
            "op": str(self.op),
            "entity": self.entity.to_payload(),
            "related": self.related.to_payload(),
        }

    def describe(self) -> str:
        target = self.related.target
        suffix = f" as {self.related.role}" if self.related.role is not None else ""
        return f"add {target.kind} {target.handle} to {self.entity}{suffix}"


@dataclass(frozen=True, slots=True, kw_only=True)
class RemoveRelation:
    entity: EntityRef
    related: Relation

    op: ClassVar[ActionOp] = ActionOp.REMOVE_RELATION

    def dependencies(self) -> tuple[str, ...]:
        return self.entity.pending_keys() + self.related.target.pending_keys()

    def resolve(self, identities: dict[str, Identity]) -> RemoveRelation:
        related = replace(self.related, target=self.related.target.resolve(identities))
        return replace(self, entity=self.entity.resolve(identities), related=related)

    def to_payload(self) -> dict[str, object]:
        return {
            "op": str(self.op),
            "entity": self.entity.to_payload(),
            "related": self.related.to_payload(),
        }

    def describe(self) -> str:
        target = self.related.target
        return f"remove {target.kind} {target.handle} from {self.entity}"


type Action = CreateEntity | EditField | AddRelation | RemoveRelation


@dataclass(frozen=True, slots=True)
class Diff:
    """Ordered actions for one platform.

    Creations precede every action that references the created entity; the
    diff engines guarantee this through ``order_actions``.
    """

    platform: Platform
    actions: tuple[Action, ...] = ()

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def canonical_payload(self) -> dict[str, object]:
        return {
            "platform": str(self.platform),
            "actions": [action.to_payload() for action in self.actions],
        }

    def render(self) -> str:
        if not self.actions:
            return f"{self.platform}: no changes\n"
        lines = [f"{self.platform}:"]
        lines.extend(f"  {action.describe()}" for action in self.actions)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()
