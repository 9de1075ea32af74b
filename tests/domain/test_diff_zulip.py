from __future__ import annotations

from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation, diff_zulip
from teamsync.domain.model import (
    DesiredUserGroup,
    LiveUserGroup,
    Pending,
    ZulipDesired,
    ZulipLive,
)


def _lang_desired() -> ZulipDesired:
    return ZulipDesired(groups=(DesiredUserGroup(name="lang", members=frozenset({1, 2, 3})),))


def test_lang_group_membership_changes() -> None:
    live = ZulipLive(
        groups={
            "lang": LiveUserGroup(
                remote_id="10", name="lang", description="", members=frozenset({1, 4})
            )
        }
    )

    diff = diff_zulip(_lang_desired(), live)

    assert [(type(action).__name__, action.related.target.key) for action in diff] == [  # type: ignore[union-attr]
        ("AddRelation", "2"),
        ("AddRelation", "3"),
        ("RemoveRelation", "4"),
    ]


def test_missing_group_is_created_with_members_against_its_placeholder() -> None:
    diff = diff_zulip(_lang_desired(), ZulipLive())

    create, *relations = diff.actions
    assert isinstance(create, CreateEntity)
    assert create.field_map() == {"name": "lang", "description": ""}
    assert all(isinstance(action, AddRelation) for action in relations)
    assert {action.entity.identity for action in relations} == {Pending("lang")}  # type: ignore[union-attr]
    assert len(relations) == 3


def test_description_drift_is_a_single_field_edit() -> None:
    desired = ZulipDesired(
        groups=(DesiredUserGroup(name="lang", description="Language team", members=frozenset({1})),)
    )
    live = ZulipLive(
        groups={
            "lang": LiveUserGroup(
                remote_id="10", name="lang", description="old", members=frozenset({1})
            )
        }
    )

    diff = diff_zulip(desired, live)

    assert len(diff) == 1
    edit = diff.actions[0]
    assert isinstance(edit, EditField)
    assert (edit.field, edit.old, edit.new) == ("description", "old", "Language team")


def test_groups_missing_from_definitions_are_left_alone() -> None:
    live = ZulipLive(
        groups={
            "lang": LiveUserGroup(
                remote_id="10", name="lang", description="", members=frozenset({1, 2, 3})
            ),
            "unmanaged": LiveUserGroup(
                remote_id="11", name="unmanaged", description="", members=frozenset({5})
            ),
        }
    )

    diff = diff_zulip(_lang_desired(), live)

    assert diff.is_empty
    assert not any(isinstance(action, RemoveRelation) for action in diff)
