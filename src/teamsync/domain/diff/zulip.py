"""Diff engine for Zulip user groups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from teamsync.domain.model import Committed, EntityKind, EntityRef, Pending, Platform

from .actions import CreateEntity, Diff
from .fields import field_edits, relation_changes
from .ordering import order_actions

if TYPE_CHECKING:
    from teamsync.domain.model import DesiredUserGroup, LiveUserGroup, ZulipDesired, ZulipLive

    from .actions import Action, FieldValue

GROUP_FIELDS = ("description",)


def diff_zulip(desired: ZulipDesired, live: ZulipLive) -> Diff:
    actions: list[Action] = []
    for group in sorted(desired.groups, key=lambda group: group.name):
        actions.extend(_group(group, live.groups.get(group.name)))
    return Diff(platform=Platform.ZULIP, actions=order_actions(actions))


def _user_ref(user_id: int) -> EntityRef:
    return EntityRef(kind=EntityKind.USER, key=str(user_id), identity=Committed(str(user_id)))


def _group(group: DesiredUserGroup, live_group: LiveUserGroup | None) -> list[Action]:
    identity = Committed(live_group.remote_id) if live_group else Pending(group.name)
    group_ref = EntityRef(kind=EntityKind.TEAM, key=group.name, identity=identity, label=group.name)
    desired_fields: dict[str, FieldValue] = {
        "name": group.name,
        "description": group.description,
    }

    actions: list[Action] = []
    if live_group is None:
        actions.append(CreateEntity.of(group_ref, desired_fields))
    else:
        live_fields: dict[str, FieldValue] = {"description": live_group.description}
        actions.extend(field_edits(group_ref, desired_fields, live_fields, GROUP_FIELDS))

    # Zulip group members carry no role
    live_members = live_group.members if live_group else frozenset[int]()

    def membership(user_id: int) -> EntityRef:
        return EntityRef(
            kind=EntityKind.MEMBERSHIP,
            key=f"{group.name}/{user_id}",
            identity=Committed(str(user_id)),
            parent=group_ref,
        )

    actions.extend(
        relation_changes(
            group_ref,
            desired=dict.fromkeys(group.members),
            live=dict.fromkeys(live_members),
            target=_user_ref,
            relation_entity=membership,
            role_field="role",
        )
    )
    return actions
