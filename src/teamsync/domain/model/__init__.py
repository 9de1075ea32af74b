"""Domain model: identities, entity references and platform snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import EntityKind, Platform, RepoPermission, TeamPrivacy, TeamRole
from .github import (
    BranchProtectionSettings,
    DesiredBranchProtection,
    DesiredMember,
    DesiredOrg,
    DesiredRepo,
    DesiredTeam,
    GitHubDesired,
    GitHubLive,
    LiveAppInstallation,
    LiveBranchProtection,
    LiveMember,
    LiveOrg,
    LiveRepo,
    LiveTeam,
)
from .identity import Committed, EntityRef, Identity, Pending
from .zulip import DesiredUserGroup, LiveUserGroup, ZulipDesired, ZulipLive


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredState:
    """Everything the team definitions ask for, per platform."""

    github: GitHubDesired = field(default_factory=GitHubDesired)
    zulip: ZulipDesired = field(default_factory=ZulipDesired)


__all__ = [
    "BranchProtectionSettings",
    "Committed",
    "DesiredBranchProtection",
    "DesiredMember",
    "DesiredOrg",
    "DesiredRepo",
    "DesiredState",
    "DesiredTeam",
    "DesiredUserGroup",
    "EntityKind",
    "EntityRef",
    "GitHubDesired",
    "GitHubLive",
    "Identity",
    "LiveAppInstallation",
    "LiveBranchProtection",
    "LiveMember",
    "LiveOrg",
    "LiveRepo",
    "LiveTeam",
    "LiveUserGroup",
    "Pending",
    "Platform",
    "RepoPermission",
    "TeamPrivacy",
    "TeamRole",
    "ZulipDesired",
    "ZulipLive",
]
