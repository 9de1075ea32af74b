"""Translate GitHub payloads into live snapshot entities."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

from teamsync.domain.model import (
    BranchProtectionSettings,
    LiveBranchProtection,
    LiveMember,
    LiveRepo,
    LiveTeam,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from teamsync.domain.model import RepoPermission

    from .schema import BranchProtectionNode, MemberEdge, RepoPayload, TeamPayload


def user_node_id(user_id: int) -> str:
    """Global node id of a user, as accepted by the ``nodes(ids:)`` query."""

    return base64.b64encode(f"04:User{user_id}".encode()).decode()


def translate_team(
    payload: TeamPayload,
    *,
    members: Iterable[MemberEdge] = (),
    invitations: Iterable[str] = (),
) -> LiveTeam:
    return LiveTeam(
        remote_id=str(payload.id),
        name=payload.name,
        slug=payload.slug,
        description=payload.description or "",
        privacy=payload.privacy,
        members={
            edge.node.database_id: LiveMember(
                user_id=edge.node.database_id,
                login=edge.node.login,
                role=edge.role,
            )
            for edge in members
        },
        invitations=frozenset(invitations),
    )


def translate_branch_protection(node: BranchProtectionNode) -> LiveBranchProtection:
    return LiveBranchProtection(
        remote_id=node.id,
        pattern=node.pattern,
        settings=BranchProtectionSettings(
            is_admin_enforced=node.is_admin_enforced,
            dismisses_stale_reviews=node.dismisses_stale_reviews,
            requires_approving_reviews=node.requires_approving_reviews,
            required_approving_review_count=node.required_approving_review_count or 0,
            requires_status_checks=node.requires_status_checks,
            required_status_check_contexts=tuple(sorted(node.required_status_check_contexts)),
        ),
    )


def translate_repo(
    payload: RepoPayload,
    *,
    teams: Mapping[str, RepoPermission],
    collaborators: Mapping[str, RepoPermission],
    branch_protections: Iterable[LiveBranchProtection],
) -> LiveRepo:
    return LiveRepo(
        remote_id=payload.node_id,
        name=payload.name,
        description=payload.description or "",
        homepage=payload.homepage,
        archived=payload.archived,
        teams=dict(teams),
        collaborators=dict(collaborators),
        branch_protections={rule.pattern: rule for rule in branch_protections},
    )
