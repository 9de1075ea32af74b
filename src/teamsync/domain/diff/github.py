"""Diff engine for GitHub organizations.

``diff_github`` is a pure function of its two snapshots: organizations are
visited in declared order and every entity collection in sorted key order, so
identical inputs always produce identical diffs (and identical plan hashes).
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from teamsync.domain.model import (
    Committed,
    EntityKind,
    EntityRef,
    Pending,
    Platform,
    TeamRole,
)

from .actions import AddRelation, CreateEntity, Diff, EditField, Relation, RemoveRelation
from .fields import field_edits, relation_changes
from .ordering import DiffError, order_actions

if TYPE_CHECKING:
    from collections.abc import Mapping

    from teamsync.domain.model import (
        DesiredOrg,
        DesiredRepo,
        DesiredTeam,
        GitHubDesired,
        GitHubLive,
        LiveOrg,
        LiveRepo,
        LiveTeam,
    )

    from .actions import Action, FieldValue

log = getLogger(__name__)

# repository permission keys tell team grants from collaborator grants
TEAM_GRANT = "#team:"
USER_GRANT = "#user:"

TEAM_FIELDS = ("name", "description", "privacy")
REPO_FIELDS = ("description", "homepage", "archived")
REPO_CREATE_FIELDS = ("name", "description", "homepage")
BRANCH_PROTECTION_FIELDS = (
    "is_admin_enforced",
    "dismisses_stale_reviews",
    "requires_approving_reviews",
    "required_approving_review_count",
    "requires_status_checks",
    "required_status_check_contexts",
)


def diff_github(desired: GitHubDesired, live: GitHubLive) -> Diff:
    actions: list[Action] = []
    for org in desired.orgs:
        live_org = live.orgs.get(org.name)
        if live_org is None:
            raise DiffError(f"no live snapshot for GitHub organization {org.name}")
        actions.extend(_OrgDiff(org, live_org, live.usernames).actions())
    ordered = order_actions(actions)
    # archived repositories are read-only: archive once every other write is done
    archiving = tuple(action for action in ordered if _archives(action))
    rest = tuple(action for action in ordered if not _archives(action))
    return Diff(platform=Platform.GITHUB, actions=rest + archiving)


def _archives(action: Action) -> bool:
    return (
        isinstance(action, EditField)
        and action.entity.kind is EntityKind.REPOSITORY
        and action.field == "archived"
        and action.new is True
    )


class _OrgDiff:
    def __init__(self, desired: DesiredOrg, live: LiveOrg, usernames: Mapping[int, str]) -> None:
        self.desired = desired
        self.live = live
        self.usernames = usernames
        self.org_ref = EntityRef(
            kind=EntityKind.ORGANIZATION,
            key=desired.name,
            identity=Committed(desired.name),
            label=desired.name,
        )
        self.team_refs = self._team_refs()
        self.repo_refs = {repo.name: self._repo_ref(repo.name) for repo in desired.repos}

    def actions(self) -> list[Action]:
        actions: list[Action] = []
        for team in sorted(self.desired.teams, key=lambda team: team.slug):
            actions.extend(self._team(team))
        for repo in sorted(self.desired.repos, key=lambda repo: repo.name):
            actions.extend(self._repo(repo))
        actions.extend(self._app_installations())
        return actions

    def _team_refs(self) -> dict[str, EntityRef]:
        refs: dict[str, EntityRef] = {}
        for slug, team in self.live.teams.items():
            refs[slug] = self._team_ref(slug, Committed(team.remote_id))
        for team in self.desired.teams:
            if team.slug not in refs:
                refs[team.slug] = self._team_ref(
                    team.slug, Pending.of(EntityKind.TEAM, self._key(team.slug))
                )
        return refs

    def _key(self, name: str) -> str:
        return f"{self.desired.name}/{name}"

    def _team_ref(self, slug: str, identity: Committed | Pending) -> EntityRef:
        return EntityRef(
            kind=EntityKind.TEAM,
            key=self._key(slug),
            identity=identity,
            label=slug,
            parent=self.org_ref,
        )

    def _repo_ref(self, name: str) -> EntityRef:
        live_repo = self.live.repos.get(name)
        identity = (
            Committed(live_repo.remote_id)
            if live_repo
            else Pending.of(EntityKind.REPOSITORY, self._key(name))
        )
        return EntityRef(
            kind=EntityKind.REPOSITORY,
            key=self._key(name),
            identity=identity,
            label=name,
            parent=self.org_ref,
        )

    def _user_ref(self, user_id: int, fallback_login: str) -> EntityRef:
        login = self.usernames.get(user_id, fallback_login)
        return EntityRef(
            kind=EntityKind.USER,
            key=str(user_id),
            identity=Committed(str(user_id)),
            label=login,
        )

    # teams

    def _team(self, team: DesiredTeam) -> list[Action]:
        team_ref = self.team_refs[team.slug]
        live_team = self.live.teams.get(team.slug)
        desired_fields: dict[str, FieldValue] = {
            "name": team.name,
            "description": team.description,
            "privacy": str(team.privacy),
        }

        actions: list[Action] = []
        if live_team is None:
            actions.append(CreateEntity.of(team_ref, desired_fields))
        else:
            live_fields: dict[str, FieldValue] = {
                "name": live_team.name,
                "description": live_team.description,
                "privacy": str(live_team.privacy),
            }
            actions.extend(field_edits(team_ref, desired_fields, live_fields, TEAM_FIELDS))
        actions.extend(self._memberships(team, team_ref, live_team))
        return actions

    def _memberships(
        self,
        team: DesiredTeam,
        team_ref: EntityRef,
        live_team: LiveTeam | None,
    ) -> list[Action]:
        logins = {member.user_id: member.login for member in team.members}
        if live_team is not None:
            logins.update({uid: member.login for uid, member in live_team.members.items()})
        desired_roles: dict[int, str | None] = {
            member.user_id: str(self._expected_role(member.user_id)) for member in team.members
        }
        live_roles: dict[int, str | None] = {}
        invited: list[int] = []
        if live_team is not None:
            live_roles = {uid: str(member.role) for uid, member in live_team.members.items()}
            invitations = {login.lower() for login in live_team.invitations}
            invited = [
                uid
                for uid in desired_roles
                if self.usernames.get(uid, logins[uid]).lower() in invitations
            ]

        def target(user_id: int) -> EntityRef:
            return self._user_ref(user_id, logins[user_id])

        def membership(user_id: int) -> EntityRef:
            user = target(user_id)
            return EntityRef(
                kind=EntityKind.MEMBERSHIP,
                key=f"{team_ref.key}/{user_id}",
                identity=user.identity,
                label=user.label,
                parent=team_ref,
            )

        return relation_changes(
            team_ref,
            desired=desired_roles,
            live=live_roles,
            target=target,
            relation_entity=membership,
            role_field="role",
            skip_add=invited,
        )

    def _expected_role(self, user_id: int) -> TeamRole:
        # GitHub makes organization owners maintainers of every team they join
        return TeamRole.MAINTAINER if user_id in self.live.owners else TeamRole.MEMBER

    # repositories

    def _repo(self, repo: DesiredRepo) -> list[Action]:
        repo_ref = self.repo_refs[repo.name]
        live_repo = self.live.repos.get(repo.name)
        desired_fields: dict[str, FieldValue] = {
            "name": repo.name,
            "description": repo.description,
            "homepage": repo.homepage,
            "archived": repo.archived,
        }

        actions: list[Action] = []
        if live_repo is None:
            create_fields = {name: desired_fields[name] for name in REPO_CREATE_FIELDS}
            actions.append(CreateEntity.of(repo_ref, create_fields))
            if repo.archived:
                actions.append(EditField(entity=repo_ref, field="archived", old=False, new=True))
        else:
            live_fields: dict[str, FieldValue] = {
                "description": live_repo.description,
                "homepage": live_repo.homepage,
                "archived": live_repo.archived,
            }
            actions.extend(field_edits(repo_ref, desired_fields, live_fields, REPO_FIELDS))

        actions.extend(self._repo_teams(repo, repo_ref, live_repo))
        actions.extend(self._repo_collaborators(repo, repo_ref, live_repo))
        actions.extend(self._branch_protections(repo, repo_ref, live_repo))
        return actions

    def _repo_teams(
        self,
        repo: DesiredRepo,
        repo_ref: EntityRef,
        live_repo: LiveRepo | None,
    ) -> list[Action]:
        unknown = sorted(slug for slug in repo.teams if slug not in self.team_refs)
        if unknown:
            raise DiffError(
                f"repository {repo_ref.key} grants access to unknown teams: {', '.join(unknown)}"
            )
        live_teams = dict(live_repo.teams) if live_repo is not None else {}

        def target(slug: str) -> EntityRef:
            return self.team_refs[slug]

        def permission(slug: str) -> EntityRef:
            team = target(slug)
            return EntityRef(
                kind=EntityKind.REPO_PERMISSION,
                key=f"{repo_ref.key}{TEAM_GRANT}{slug}",
                identity=team.identity,
                label=slug,
                parent=repo_ref,
            )

        return relation_changes(
            repo_ref,
            desired={slug: str(perm) for slug, perm in repo.teams.items()},
            live={slug: str(perm) for slug, perm in live_teams.items()},
            target=target,
            relation_entity=permission,
            role_field="permission",
        )

    def _repo_collaborators(
        self,
        repo: DesiredRepo,
        repo_ref: EntityRef,
        live_repo: LiveRepo | None,
    ) -> list[Action]:
        live_users = dict(live_repo.collaborators) if live_repo is not None else {}
        # GitHub logins are case-insensitive: compare lowercased, address by the declared spelling
        spelling = {login.lower(): login for login in live_users}
        spelling.update({login.lower(): login for login in repo.collaborators})

        def target(key: str) -> EntityRef:
            return EntityRef(
                kind=EntityKind.USER,
                key=key,
                identity=Committed(key),
                label=spelling[key],
            )

        def permission(key: str) -> EntityRef:
            return EntityRef(
                kind=EntityKind.REPO_PERMISSION,
                key=f"{repo_ref.key}{USER_GRANT}{key}",
                identity=Committed(key),
                label=spelling[key],
                parent=repo_ref,
            )

        return relation_changes(
            repo_ref,
            desired={login.lower(): str(perm) for login, perm in repo.collaborators.items()},
            live={login.lower(): str(perm) for login, perm in live_users.items()},
            target=target,
            relation_entity=permission,
            role_field="permission",
        )

    def _branch_protections(
        self,
        repo: DesiredRepo,
        repo_ref: EntityRef,
        live_repo: LiveRepo | None,
    ) -> list[Action]:
        live_rules = dict(live_repo.branch_protections) if live_repo is not None else {}
        actions: list[Action] = []

        for protection in sorted(repo.branch_protections, key=lambda rule: rule.pattern):
            desired_fields: dict[str, FieldValue] = dict(protection.settings.managed_values())
            live_rule = live_rules.get(protection.pattern)
            key = f"{repo_ref.key}:{protection.pattern}"
            if live_rule is None:
                rule_ref = EntityRef(
                    kind=EntityKind.BRANCH_PROTECTION,
                    key=key,
                    identity=Pending.of(EntityKind.BRANCH_PROTECTION, key),
                    label=protection.pattern,
                    parent=repo_ref,
                )
                fields = {"pattern": protection.pattern, **desired_fields}
                actions.append(CreateEntity.of(rule_ref, fields))
                continue
            rule_ref = EntityRef(
                kind=EntityKind.BRANCH_PROTECTION,
                key=key,
                identity=Committed(live_rule.remote_id),
                label=protection.pattern,
                parent=repo_ref,
            )
            live_fields: dict[str, FieldValue] = dict(live_rule.settings.managed_values())
            actions.extend(
                field_edits(rule_ref, desired_fields, live_fields, BRANCH_PROTECTION_FIELDS)
            )

        desired_patterns = {rule.pattern for rule in repo.branch_protections}
        for pattern in sorted(live_rules):
            if pattern in desired_patterns:
                continue
            rule_ref = EntityRef(
                kind=EntityKind.BRANCH_PROTECTION,
                key=f"{repo_ref.key}:{pattern}",
                identity=Committed(live_rules[pattern].remote_id),
                label=pattern,
                parent=repo_ref,
            )
            actions.append(RemoveRelation(entity=repo_ref, related=Relation(target=rule_ref)))
        return actions

    # app installations

    def _app_installations(self) -> list[Action]:
        wanted: dict[str, set[str]] = {}
        for repo in self.desired.repos:
            for app in repo.apps:
                wanted.setdefault(app, set()).add(repo.name)

        installations = {inst.app_slug: inst for inst in self.live.app_installations}
        actions: list[Action] = []
        for app_slug in sorted(wanted):
            installation = installations.get(app_slug)
            if installation is None:
                log.warning(
                    "app %s is requested by %s but not installed on organization %s",
                    app_slug,
                    ", ".join(sorted(wanted[app_slug])),
                    self.desired.name,
                )
                continue
            installation_ref = EntityRef(
                kind=EntityKind.APP_INSTALLATION,
                key=self._key(f"apps/{app_slug}"),
                identity=Committed(str(installation.installation_id)),
                label=app_slug,
                parent=self.org_ref,
            )
            for repo_name in sorted(self.repo_refs):
                should_have = repo_name in wanted[app_slug]
                has = repo_name in installation.repositories
                related = Relation(target=self.repo_refs[repo_name])
                if should_have and not has:
                    actions.append(AddRelation(entity=installation_ref, related=related))
                elif has and not should_have:
                    actions.append(RemoveRelation(entity=installation_ref, related=related))
        return actions
