"""Shared helpers for field-granular and relation diffs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .actions import AddRelation, EditField, Relation, RemoveRelation

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from teamsync.domain.model import EntityRef

    from .actions import Action, FieldValue


def field_edits(
    entity: EntityRef,
    desired: Mapping[str, FieldValue],
    live: Mapping[str, FieldValue],
    managed: Sequence[str],
) -> list[EditField]:
    """One ``EditField`` per managed field whose desired value differs.

    Fields outside ``managed`` never appear, whatever their values.
    """

    edits: list[EditField] = []
    for name in managed:
        old = live.get(name)
        new = desired.get(name)
        if old != new:
            edits.append(EditField(entity=entity, field=name, old=old, new=new))
    return edits


def relation_changes[K: (int, str)](
    entity: EntityRef,
    *,
    desired: Mapping[K, str | None],
    live: Mapping[K, str | None],
    target: Callable[[K], EntityRef],
    relation_entity: Callable[[K], EntityRef],
    role_field: str,
    skip_add: Iterable[K] = (),
) -> list[Action]:
    """Diff two ``key -> role`` mappings into add/edit/remove actions.

    Keys are visited in sorted order. A key present on both sides with a
    different role becomes ``EditField(role_field)`` on the relation entity
    (membership, permission) instead of a remove and re-add. Keys only in
    ``live`` are removed.
    """

    skipped = set(skip_add)
    actions: list[Action] = []
    for key in sorted(desired):
        role = desired[key]
        if key not in live:
            if key in skipped:
                continue
            related = Relation(target=target(key), role=role)
            actions.append(AddRelation(entity=entity, related=related))
        elif live[key] != role:
            actions.append(
                EditField(
                    entity=relation_entity(key),
                    field=role_field,
                    old=live[key],
                    new=role,
                )
            )
    for key in sorted(live):
        if key not in desired:
            related = Relation(target=target(key))
            actions.append(RemoveRelation(entity=entity, related=related))
    return actions
