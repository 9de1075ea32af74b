"""Zulip user group reader/writer and the stream used as review channel."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from teamsync.adapters.platform_http import MalformedResponseError, PlatformHttpClient
from teamsync.domain.apply import ApplyError
from teamsync.domain.model import Committed, EntityKind, LiveUserGroup, Pending, ZulipLive

from .schema import CreateGroupResponse, ErrorResponse, UserGroupsResponse

if TYPE_CHECKING:
    from collections.abc import Iterable

    from teamsync.adapters.platform_http import ClientFactory, Sleep
    from teamsync.config.confirmation import ConfirmationConfig
    from teamsync.config.zulip import ZulipConfig
    from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation
    from teamsync.domain.model import EntityRef, ZulipDesired

log = getLogger(__name__)


def _id_array(ids: Iterable[int]) -> str:
    return json.dumps(sorted(ids), separators=(",", ":"))


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate(response.json()).msg
    except (ValueError, ValidationError):
        return response.text


def _group_id(ref: EntityRef) -> str:
    if isinstance(ref.identity, Pending):
        raise ApplyError(f"{ref} has not been created yet")
    return ref.identity.remote_id


class ZulipClient:
    """Read and write Zulip user groups.

    Implements both the reader and the writer port; groups are addressed by
    their numeric id, users by their Zulip user id.
    """

    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

    @classmethod
    def from_config(
        cls,
        config: ZulipConfig,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Sleep | None = None,
    ) -> ZulipClient:
        return cls(PlatformHttpClient(config.resilience, client_factory=client_factory, sleep=sleep))

    # read

    def user_groups(self) -> dict[str, LiveUserGroup]:
        payload = self._http.fetch_one("user_groups")
        if payload is None:
            raise MalformedResponseError("zulip: user groups endpoint is missing")
        try:
            response = UserGroupsResponse.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError("zulip: unexpected user groups payload") from exc
        return {
            group.name: LiveUserGroup(
                remote_id=str(group.id),
                name=group.name,
                description=group.description,
                members=frozenset(group.members),
            )
            for group in response.user_groups
            if not group.is_system_group
        }

    def snapshot(self, desired: ZulipDesired) -> ZulipLive:
        wanted = {group.name for group in desired.groups}
        groups = self.user_groups()
        return ZulipLive(groups={name: group for name, group in groups.items() if name in wanted})

    # write

    def create(self, action: CreateEntity) -> Committed:
        entity = action.entity
        if entity.kind is not EntityKind.TEAM:
            raise ApplyError(f"cannot create {entity.kind} on Zulip")
        fields = action.field_map()
        response = self._http.send(
            "POST",
            "user_groups/create",
            data={
                "name": str(fields["name"]),
                "description": str(fields.get("description") or ""),
                # members are added by the relation actions that follow
                "members": _id_array(()),
            },
            allow=(httpx.codes.BAD_REQUEST,),
        )
        if response.status_code == httpx.codes.BAD_REQUEST:
            message = _error_message(response)
            if "already exists" not in message:
                raise ApplyError(f"Zulip refused to create user group {entity.key}: {message}")
            log.debug("Zulip user group %s already exists", entity.key)
        else:
            created = CreateGroupResponse.model_validate(response.json())
            if created.group_id is not None:
                return Committed(str(created.group_id))

        group = self.user_groups().get(str(fields["name"]))
        if group is None:
            raise ApplyError(f"Zulip user group {entity.key} not found after creation")
        return Committed(group.remote_id)

    def edit(self, action: EditField) -> None:
        entity = action.entity
        if entity.kind is not EntityKind.TEAM or action.field not in {"name", "description"}:
            raise ApplyError(f"cannot edit {entity.kind} {action.field} on Zulip")
        self._http.send(
            "PATCH",
            f"user_groups/{_group_id(entity)}",
            data={action.field: str(action.new or "")},
        )

    def add_relation(self, action: AddRelation) -> None:
        self._update_members(action.entity, add=[int(action.related.target.key)])

    def remove_relation(self, action: RemoveRelation) -> None:
        self._update_members(action.entity, delete=[int(action.related.target.key)])

    def _update_members(
        self,
        group: EntityRef,
        *,
        add: Iterable[int] = (),
        delete: Iterable[int] = (),
    ) -> None:
        if group.kind is not EntityKind.TEAM:
            raise ApplyError(f"cannot change members of {group.kind} on Zulip")
        response = self._http.send(
            "POST",
            f"user_groups/{_group_id(group)}/members",
            data={"add": _id_array(add), "delete": _id_array(delete)},
            allow=(httpx.codes.BAD_REQUEST,),
        )
        if response.status_code == httpx.codes.BAD_REQUEST:
            # Zulip rejects adding a member twice and removing a non-member
            log.warning(
                "Zulip did not update members of %s: %s", group.key, _error_message(response)
            )

    # messages

    def post_message(self, stream: str, topic: str, content: str) -> None:
        self._http.send(
            "POST",
            "messages",
            data={"type": "stream", "to": stream, "topic": topic, "content": content},
        )


class ZulipStreamChannel:
    """Publish plans to a Zulip stream topic."""

    def __init__(self, client: ZulipClient, config: ConfirmationConfig) -> None:
        self._client = client
        self._config = config

    def publish(self, message: str) -> None:
        log.info("posting to Zulip %s > %s", self._config.stream, self._config.topic)
        self._client.post_message(self._config.stream, self._config.topic, message)
