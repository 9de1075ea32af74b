from __future__ import annotations

import pytest

from teamsync.domain.diff import (
    AddRelation,
    CreateEntity,
    DiffError,
    EditField,
    Relation,
    order_actions,
)
from teamsync.domain.model import Committed, EntityKind, EntityRef, Pending


def _team(key: str, *, pending: bool) -> EntityRef:
    identity = Pending(key) if pending else Committed(f"id-{key}")
    return EntityRef(kind=EntityKind.TEAM, key=key, identity=identity)


def _user(user_id: int) -> EntityRef:
    return EntityRef(kind=EntityKind.USER, key=str(user_id), identity=Committed(str(user_id)))


def test_creations_move_before_dependent_actions() -> None:
    new = _team("org/new", pending=True)
    old = _team("org/old", pending=False)
    add_new = AddRelation(entity=new, related=Relation(target=_user(1)))
    add_old = AddRelation(entity=old, related=Relation(target=_user(2)))
    create = CreateEntity.of(new, {"name": "new"})

    ordered = order_actions([add_new, add_old, create])

    assert ordered == (add_old, create, add_new)


def test_ordering_is_stable_for_independent_actions() -> None:
    old = _team("org/old", pending=False)
    actions = [
        EditField(entity=old, field="description", old="a", new="b"),
        AddRelation(entity=old, related=Relation(target=_user(2))),
        AddRelation(entity=old, related=Relation(target=_user(1))),
    ]

    assert order_actions(actions) == tuple(actions)


def test_pending_reference_without_creation_is_rejected() -> None:
    ghost = _team("org/ghost", pending=True)

    with pytest.raises(DiffError, match="org/ghost"):
        order_actions([AddRelation(entity=ghost, related=Relation(target=_user(1)))])


def test_duplicate_creation_is_rejected() -> None:
    new = _team("org/new", pending=True)

    with pytest.raises(DiffError, match="twice"):
        order_actions([CreateEntity.of(new, {"name": "a"}), CreateEntity.of(new, {"name": "b"})])


def test_nested_pending_parents_rank_after_their_creators() -> None:
    repo = EntityRef(kind=EntityKind.REPOSITORY, key="org/book", identity=Pending("org/book"))
    rule = EntityRef(
        kind=EntityKind.BRANCH_PROTECTION,
        key="org/book:main",
        identity=Pending("org/book:main"),
        parent=repo,
    )
    edit_rule = EditField(entity=rule, field="is_admin_enforced", old=True, new=False)
    create_rule = CreateEntity.of(rule, {"pattern": "main"})
    create_repo = CreateEntity.of(repo, {"name": "book"})

    ordered = order_actions([edit_rule, create_rule, create_repo])

    assert ordered == (create_repo, create_rule, edit_rule)
