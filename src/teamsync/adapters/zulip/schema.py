"""Pydantic models describing the Zulip API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ZulipBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UserGroupPayload(ZulipBaseModel):
    id: int
    name: str
    description: str = ""
    members: list[int] = Field(default_factory=list)
    is_system_group: bool = False


class UserGroupsResponse(ZulipBaseModel):
    user_groups: list[UserGroupPayload] = Field(default_factory=list)


class CreateGroupResponse(ZulipBaseModel):
    # older servers answer without the id
    group_id: int | None = None


class ErrorResponse(ZulipBaseModel):
    result: str = "error"
    msg: str = ""
    code: str | None = None
