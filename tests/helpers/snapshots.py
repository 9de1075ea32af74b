"""Small builders for desired and live GitHub snapshots."""

from __future__ import annotations

from teamsync.domain.model import (
    DesiredMember,
    DesiredOrg,
    DesiredTeam,
    GitHubDesired,
    GitHubLive,
    LiveMember,
    LiveOrg,
    LiveTeam,
    TeamPrivacy,
    TeamRole,
)

ORG = "rust-lang"


def login(user_id: int) -> str:
    return f"user{user_id}"


def desired_team(slug: str, member_ids: list[int], **overrides: object) -> DesiredTeam:
    fields: dict[str, object] = {
        "name": slug,
        "slug": slug,
        "description": f"The {slug} team",
        "members": tuple(DesiredMember(user_id=uid, login=login(uid)) for uid in member_ids),
    }
    fields.update(overrides)
    return DesiredTeam(**fields)  # type: ignore[arg-type]


def live_team(
    slug: str,
    members: dict[int, TeamRole],
    *,
    remote_id: str = "100",
    invitations: frozenset[str] = frozenset(),
    **overrides: object,
) -> LiveTeam:
    fields: dict[str, object] = {
        "remote_id": remote_id,
        "name": slug,
        "slug": slug,
        "description": f"The {slug} team",
        "privacy": TeamPrivacy.CLOSED,
        "members": {
            uid: LiveMember(user_id=uid, login=login(uid), role=role) for uid, role in members.items()
        },
        "invitations": invitations,
    }
    fields.update(overrides)
    return LiveTeam(**fields)  # type: ignore[arg-type]


def github_desired(*orgs: DesiredOrg) -> GitHubDesired:
    return GitHubDesired(orgs=orgs or (DesiredOrg(name=ORG),))


def github_live(*orgs: LiveOrg, user_ids: tuple[int, ...] = ()) -> GitHubLive:
    return GitHubLive(
        orgs={org.name: org for org in orgs},
        usernames={uid: login(uid) for uid in user_ids},
    )
