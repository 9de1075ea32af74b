"""Desired and live state snapshots for GitHub organizations.

Desired types mirror the team definitions verbatim and carry no remote
identity. Live types are normalised read-layer output and always carry the
platform's id. Both are rebuilt on every run and discarded after diffing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import RepoPermission, TeamPrivacy, TeamRole

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, kw_only=True)
class BranchProtectionSettings:
    """Fields of a protection rule managed by teamsync."""

    is_admin_enforced: bool = True
    dismisses_stale_reviews: bool = False
    requires_approving_reviews: bool = True
    required_approving_review_count: int = 1
    requires_status_checks: bool = False
    required_status_check_contexts: tuple[str, ...] = ()

    def managed_values(self) -> dict[str, object]:
        return {
            "is_admin_enforced": self.is_admin_enforced,
            "dismisses_stale_reviews": self.dismisses_stale_reviews,
            "requires_approving_reviews": self.requires_approving_reviews,
            "required_approving_review_count": self.required_approving_review_count,
            "requires_status_checks": self.requires_status_checks,
            "required_status_check_contexts": tuple(
                sorted(self.required_status_check_contexts)
            ),
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredMember:
    user_id: int
    login: str


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredTeam:
    name: str
    slug: str
    description: str = ""
    privacy: TeamPrivacy = TeamPrivacy.CLOSED
    members: tuple[DesiredMember, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredBranchProtection:
    pattern: str
    settings: BranchProtectionSettings = field(default_factory=BranchProtectionSettings)


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredRepo:
    name: str
    description: str = ""
    homepage: str | None = None
    archived: bool = False
    teams: Mapping[str, RepoPermission] = field(default_factory=dict)
    collaborators: Mapping[str, RepoPermission] = field(default_factory=dict)
    branch_protections: tuple[DesiredBranchProtection, ...] = ()
    apps: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredOrg:
    name: str
    teams: tuple[DesiredTeam, ...] = ()
    repos: tuple[DesiredRepo, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class GitHubDesired:
    orgs: tuple[DesiredOrg, ...] = ()

    def member_ids(self) -> list[int]:
        ids = {member.user_id for org in self.orgs for team in org.teams for member in team.members}
        return sorted(ids)


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveMember:
    user_id: int
    login: str
    role: TeamRole


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveTeam:
    remote_id: str
    name: str
    slug: str
    description: str
    privacy: TeamPrivacy
    members: Mapping[int, LiveMember] = field(default_factory=dict)
    invitations: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveBranchProtection:
    remote_id: str
    pattern: str
    settings: BranchProtectionSettings


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveRepo:
    remote_id: str
    name: str
    description: str
    homepage: str | None
    archived: bool
    teams: Mapping[str, RepoPermission] = field(default_factory=dict)
    collaborators: Mapping[str, RepoPermission] = field(default_factory=dict)
    branch_protections: Mapping[str, LiveBranchProtection] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveAppInstallation:
    installation_id: int
    app_slug: str
    repositories: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveOrg:
    name: str
    owners: frozenset[int] = frozenset()
    teams: Mapping[str, LiveTeam] = field(default_factory=dict)
    repos: Mapping[str, LiveRepo] = field(default_factory=dict)
    app_installations: tuple[LiveAppInstallation, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class GitHubLive:
    orgs: Mapping[str, LiveOrg] = field(default_factory=dict)
    usernames: Mapping[int, str] = field(default_factory=dict)
