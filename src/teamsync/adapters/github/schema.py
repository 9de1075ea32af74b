"""Pydantic models describing the GitHub REST and GraphQL payloads we read."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from teamsync.domain.model import RepoPermission, TeamPrivacy, TeamRole

# ``role_name`` on collaborators uses the UI names, teams use the API names
_ROLE_NAME_PERMISSIONS = {
    "read": RepoPermission.PULL,
    "triage": RepoPermission.TRIAGE,
    "write": RepoPermission.PUSH,
    "maintain": RepoPermission.MAINTAIN,
    "admin": RepoPermission.ADMIN,
}


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class GitHubBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UserPayload(GitHubBaseModel):
    id: int
    login: str


class TeamPayload(GitHubBaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    privacy: TeamPrivacy = TeamPrivacy.CLOSED

    @field_validator("privacy", mode="before")
    @classmethod
    def _fold_visible(cls, value: object) -> object:
        # "visible" is the v3 name for closed
        if value == "visible":
            return TeamPrivacy.CLOSED
        return value


class RepoTeamPayload(TeamPayload):
    permission: RepoPermission


class CollaboratorPayload(GitHubBaseModel):
    login: str
    role_name: str

    @property
    def permission(self) -> RepoPermission:
        try:
            return _ROLE_NAME_PERMISSIONS[self.role_name]
        except KeyError:
            # custom organization roles have no API permission name and fail here
            return RepoPermission(self.role_name)


class InvitationPayload(GitHubBaseModel):
    login: str | None = None


class RepoPayload(GitHubBaseModel):
    id: int
    node_id: str
    name: str
    description: str | None = None
    homepage: str | None = None
    archived: bool = False

    _normalize_homepage = field_validator("homepage", mode="before")(_blank_to_none)


class InstallationAccount(GitHubBaseModel):
    login: str


class InstallationPayload(GitHubBaseModel):
    id: int
    app_slug: str
    account: InstallationAccount | None = None


class InstallationsPage(GitHubBaseModel):
    total_count: int = 0
    installations: list[InstallationPayload] = Field(default_factory=list)


class InstallationReposPage(GitHubBaseModel):
    total_count: int = 0
    repositories: list[RepoPayload] = Field(default_factory=list)


# GraphQL


class UserNode(GitHubBaseModel):
    database_id: int = Field(alias="databaseId")
    login: str


class MemberNode(GitHubBaseModel):
    database_id: int = Field(alias="databaseId")
    login: str


class MemberEdge(GitHubBaseModel):
    role: TeamRole
    node: MemberNode

    @field_validator("role", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.lower()
        return value


class MembersConnection(GitHubBaseModel):
    edges: list[MemberEdge] = Field(default_factory=list)


class BranchProtectionNode(GitHubBaseModel):
    id: str
    pattern: str
    is_admin_enforced: bool = Field(alias="isAdminEnforced")
    dismisses_stale_reviews: bool = Field(alias="dismissesStaleReviews")
    requires_approving_reviews: bool = Field(alias="requiresApprovingReviews")
    required_approving_review_count: int | None = Field(
        default=None, alias="requiredApprovingReviewCount"
    )
    requires_status_checks: bool = Field(alias="requiresStatusChecks")
    required_status_check_contexts: list[str] = Field(
        default_factory=list, alias="requiredStatusCheckContexts"
    )

    @field_validator("required_status_check_contexts", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class BranchProtectionConnection(GitHubBaseModel):
    nodes: list[BranchProtectionNode | None] = Field(default_factory=list)
