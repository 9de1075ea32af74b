"""Pydantic models for the team definitions document."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, model_validator

from teamsync.domain.model import RepoPermission, TeamPrivacy


class DefinitionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class MemberDefinition(DefinitionModel):
    id: int
    login: str


class TeamDefinition(DefinitionModel):
    name: str
    slug: str = ""
    description: str = ""
    privacy: TeamPrivacy = TeamPrivacy.CLOSED
    members: list[MemberDefinition] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_slug(cls, value: object) -> object:
        if isinstance(value, Mapping) and not value.get("slug") and "name" in value:
            data = dict(cast(Mapping[str, object], value))
            # GitHub derives the slug from the name the same way
            data["slug"] = "-".join(str(data["name"]).lower().split())
            return data
        return value


class BranchProtectionDefinition(DefinitionModel):
    pattern: str
    is_admin_enforced: bool = True
    dismisses_stale_reviews: bool = False
    requires_approving_reviews: bool = True
    required_approving_review_count: int = 1
    required_status_checks: list[str] = Field(default_factory=list)


class RepoDefinition(DefinitionModel):
    name: str
    description: str = ""
    homepage: str | None = None
    archived: bool = False
    teams: dict[str, RepoPermission] = Field(default_factory=dict)
    collaborators: dict[str, RepoPermission] = Field(default_factory=dict)
    branch_protections: list[BranchProtectionDefinition] = Field(default_factory=list)
    apps: list[str] = Field(default_factory=list)


class OrgDefinition(DefinitionModel):
    name: str
    teams: list[TeamDefinition] = Field(default_factory=list)
    repos: list[RepoDefinition] = Field(default_factory=list)


class GitHubDefinition(DefinitionModel):
    orgs: list[OrgDefinition] = Field(default_factory=list)


class UserGroupDefinition(DefinitionModel):
    name: str
    description: str = ""
    members: list[int] = Field(default_factory=list)


class ZulipDefinition(DefinitionModel):
    groups: list[UserGroupDefinition] = Field(default_factory=list)


class TeamDocument(DefinitionModel):
    github: GitHubDefinition = Field(default_factory=GitHubDefinition)
    zulip: ZulipDefinition = Field(default_factory=ZulipDefinition)
