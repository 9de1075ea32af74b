"""GitHub reader and writer built on ``PlatformHttpClient``.

Reads are scoped to what the team definitions name: declared teams and
repositories are fetched individually, never by listing the organization.
Writes address teams by ``org/slug`` and repositories by ``org/name``; only
branch protection rules go through GraphQL, by node id.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from teamsync.adapters.platform_http import (
    GraphQLError,
    MalformedResponseError,
    PlatformHttpClient,
)
from teamsync.domain.apply import ApplyError
from teamsync.domain.diff.github import TEAM_GRANT
from teamsync.domain.model import (
    Committed,
    EntityKind,
    GitHubLive,
    LiveAppInstallation,
    LiveOrg,
    Pending,
)

from .schema import (
    BranchProtectionConnection,
    CollaboratorPayload,
    InstallationPayload,
    InvitationPayload,
    MembersConnection,
    RepoPayload,
    RepoTeamPayload,
    TeamPayload,
    UserNode,
    UserPayload,
)
from .translator import (
    translate_branch_protection,
    translate_repo,
    translate_team,
    user_node_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from teamsync.adapters.platform_http import JSON, ClientFactory, Sleep
    from teamsync.config.github import GitHubConfig
    from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation
    from teamsync.domain.model import (
        DesiredOrg,
        DesiredRepo,
        EntityRef,
        GitHubDesired,
        LiveBranchProtection,
        LiveRepo,
        LiveTeam,
        RepoPermission,
    )

    from .schema import MemberEdge

log = getLogger(__name__)

USERNAME_CHUNK_SIZE = 100

USERNAMES_QUERY = """
query($ids: [ID!]!) {
    nodes(ids: $ids) {
        ... on User {
            databaseId
            login
        }
    }
}
"""

TEAM_MEMBERS_QUERY = """
query($org: String!, $slug: String!, $cursor: String) {
    organization(login: $org) {
        team(slug: $slug) {
            members(first: 100, after: $cursor, membership: IMMEDIATE) {
                pageInfo {
                    endCursor
                    hasNextPage
                }
                edges {
                    role
                    node {
                        databaseId
                        login
                    }
                }
            }
        }
    }
}
"""

BRANCH_PROTECTIONS_QUERY = """
query($org: String!, $repo: String!) {
    repository(owner: $org, name: $repo) {
        branchProtectionRules(first: 100) {
            nodes {
                id
                pattern
                isAdminEnforced
                dismissesStaleReviews
                requiresApprovingReviews
                requiredApprovingReviewCount
                requiresStatusChecks
                requiredStatusCheckContexts
            }
        }
    }
}
"""

CREATE_BRANCH_PROTECTION_MUTATION = """
mutation($input: CreateBranchProtectionRuleInput!) {
    createBranchProtectionRule(input: $input) {
        branchProtectionRule {
            id
        }
    }
}
"""

UPDATE_BRANCH_PROTECTION_MUTATION = """
mutation($input: UpdateBranchProtectionRuleInput!) {
    updateBranchProtectionRule(input: $input) {
        branchProtectionRule {
            id
        }
    }
}
"""

DELETE_BRANCH_PROTECTION_MUTATION = """
mutation($input: DeleteBranchProtectionRuleInput!) {
    deleteBranchProtectionRule(input: $input) {
        clientMutationId
    }
}
"""

BRANCH_PROTECTION_INPUTS = {
    "pattern": "pattern",
    "is_admin_enforced": "isAdminEnforced",
    "dismisses_stale_reviews": "dismissesStaleReviews",
    "requires_approving_reviews": "requiresApprovingReviews",
    "required_approving_review_count": "requiredApprovingReviewCount",
    "requires_status_checks": "requiresStatusChecks",
    "required_status_check_contexts": "requiredStatusCheckContexts",
}


def _validate[T](model: Callable[[JSON], T], payload: JSON, what: str) -> T:
    try:
        return model(payload)
    except ValidationError as exc:
        raise MalformedResponseError(f"github: unexpected {what} payload") from exc


def _dig(data: Mapping[str, JSON] | None, *path: str) -> JSON | None:
    current: JSON | None = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _committed(ref: EntityRef) -> str:
    if isinstance(ref.identity, Pending):
        raise ApplyError(f"{ref} has not been created yet")
    return ref.identity.remote_id


def _owner(ref: EntityRef) -> str:
    if ref.parent is None:
        raise ApplyError(f"{ref} is not attached to an organization")
    return ref.parent.handle


def _graphql_value(value: object) -> object:
    if isinstance(value, tuple):
        return list(value)
    return value


class GitHubRead:
    """Snapshot the live state of the organizations the definitions name."""

    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

    @classmethod
    def from_config(
        cls,
        config: GitHubConfig,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Sleep | None = None,
    ) -> GitHubRead:
        return cls(
            PlatformHttpClient(config.resilience, client_factory=client_factory, sleep=sleep)
        )

    def snapshot(self, desired: GitHubDesired) -> GitHubLive:
        usernames = self.usernames(desired.member_ids())
        orgs = {org.name: self.org(org) for org in desired.orgs}
        return GitHubLive(orgs=orgs, usernames=usernames)

    def usernames(self, user_ids: Sequence[int]) -> dict[int, str]:
        """Current login of each user id; ids unknown to GitHub are left out."""

        result: dict[int, str] = {}
        for start in range(0, len(user_ids), USERNAME_CHUNK_SIZE):
            chunk = user_ids[start : start + USERNAME_CHUNK_SIZE]
            data = self._http.graphql(
                USERNAMES_QUERY, {"ids": [user_node_id(user_id) for user_id in chunk]}
            )
            for node in data.get("nodes") or []:
                if not node:
                    continue
                user = _validate(UserNode.model_validate, node, "user node")
                result[user.database_id] = user.login
        return result

    def org(self, desired: DesiredOrg) -> LiveOrg:
        name = desired.name
        log.info("reading GitHub organization %s", name)
        owners = frozenset(
            _validate(UserPayload.model_validate, item, "member").id
            for item in self._http.fetch_all(f"orgs/{name}/members", params={"role": "admin"})
        )

        teams: dict[str, LiveTeam] = {}
        for team in desired.teams:
            live_team = self.team(name, team.slug)
            if live_team is not None:
                teams[team.slug] = live_team

        repos: dict[str, LiveRepo] = {}
        for repo in desired.repos:
            live_repo = self.repo(name, repo.name, known_teams=teams)
            if live_repo is not None:
                repos[repo.name] = live_repo

        return LiveOrg(
            name=name,
            owners=owners,
            teams=teams,
            repos=repos,
            app_installations=self.app_installations(name, desired.repos),
        )

    def team(self, org: str, slug: str) -> LiveTeam | None:
        payload = self._http.fetch_one(f"orgs/{org}/teams/{slug}")
        if payload is None:
            return None
        team = _validate(TeamPayload.model_validate, payload, "team")
        return translate_team(
            team,
            members=self._team_members(org, slug),
            invitations=self._team_invitations(org, slug),
        )

    def _team_members(self, org: str, slug: str) -> list[MemberEdge]:
        edges: list[MemberEdge] = []

        def accumulate(connection: dict[str, JSON]) -> None:
            page = _validate(MembersConnection.model_validate, connection, "team members")
            edges.extend(page.edges)

        self._http.graphql_pages(
            TEAM_MEMBERS_QUERY,
            {"org": org, "slug": slug},
            connection=lambda data: _dig(data, "organization", "team", "members"),
            accumulate=accumulate,
        )
        return edges

    def _team_invitations(self, org: str, slug: str) -> list[str]:
        invitations = (
            _validate(InvitationPayload.model_validate, item, "invitation")
            for item in self._http.fetch_all(f"orgs/{org}/teams/{slug}/invitations")
        )
        # invitations sent by email have no login yet
        return [invitation.login for invitation in invitations if invitation.login]

    def repo(
        self,
        org: str,
        name: str,
        *,
        known_teams: dict[str, LiveTeam],
    ) -> LiveRepo | None:
        """Read one repository.

        Teams found on the repository but not declared in the definitions are
        added to ``known_teams`` (without members) so their grants can be
        diffed and revoked.
        """

        payload = self._http.fetch_one(f"repos/{org}/{name}")
        if payload is None:
            return None
        repo = _validate(RepoPayload.model_validate, payload, "repository")

        teams: dict[str, RepoPermission] = {}
        for item in self._http.fetch_all(f"repos/{org}/{name}/teams"):
            team = _validate(RepoTeamPayload.model_validate, item, "repository team")
            teams[team.slug] = team.permission
            if team.slug not in known_teams:
                known_teams[team.slug] = translate_team(team)

        collaborators: dict[str, RepoPermission] = {}
        for item in self._http.fetch_all(
            f"repos/{org}/{name}/collaborators", params={"affiliation": "direct"}
        ):
            collaborator = _validate(CollaboratorPayload.model_validate, item, "collaborator")
            collaborators[collaborator.login] = collaborator.permission

        return translate_repo(
            repo,
            teams=teams,
            collaborators=collaborators,
            branch_protections=self.branch_protections(org, name),
        )

    def branch_protections(self, org: str, repo: str) -> list[LiveBranchProtection]:
        data = self._http.graphql(BRANCH_PROTECTIONS_QUERY, {"org": org, "repo": repo})
        connection = _validate(
            BranchProtectionConnection.model_validate,
            _dig(data, "repository", "branchProtectionRules") or {},
            "branch protection rules",
        )
        return [translate_branch_protection(node) for node in connection.nodes if node]

    def app_installations(
        self, org: str, repos: Sequence[DesiredRepo]
    ) -> tuple[LiveAppInstallation, ...]:
        wanted = {app for repo in repos for app in repo.apps}
        if not wanted:
            return ()

        installations: list[LiveAppInstallation] = []
        for item in self._http.fetch_all(
            f"orgs/{org}/installations", items=lambda page: page.get("installations", [])
        ):
            installation = _validate(InstallationPayload.model_validate, item, "installation")
            if installation.app_slug not in wanted:
                continue
            repositories = (
                _validate(RepoPayload.model_validate, repo, "installation repository")
                for repo in self._http.fetch_all(
                    f"user/installations/{installation.id}/repositories",
                    items=lambda page: page.get("repositories", []),
                )
            )
            installations.append(
                LiveAppInstallation(
                    installation_id=installation.id,
                    app_slug=installation.app_slug,
                    repositories=frozenset(repo.name for repo in repositories),
                )
            )
        return tuple(installations)


class GitHubWrite:
    """Apply single GitHub actions idempotently."""

    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

    @classmethod
    def from_config(
        cls,
        config: GitHubConfig,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Sleep | None = None,
    ) -> GitHubWrite:
        return cls(
            PlatformHttpClient(config.resilience, client_factory=client_factory, sleep=sleep)
        )

    # create

    def create(self, action: CreateEntity) -> Committed:
        entity = action.entity
        fields = action.field_map()
        match entity.kind:
            case EntityKind.TEAM:
                return self._create_team(entity, fields)
            case EntityKind.REPOSITORY:
                return self._create_repo(entity, fields)
            case EntityKind.BRANCH_PROTECTION:
                return self._create_branch_protection(entity, fields)
            case _:
                raise ApplyError(f"cannot create {entity.kind} on GitHub")

    def _create_team(self, entity: EntityRef, fields: dict[str, object]) -> Committed:
        org = _owner(entity)
        response = self._http.send(
            "POST",
            f"orgs/{org}/teams",
            json={
                "name": fields["name"],
                "description": fields["description"],
                "privacy": fields["privacy"],
            },
            allow=(httpx.codes.UNPROCESSABLE_ENTITY,),
        )
        if response.status_code != httpx.codes.UNPROCESSABLE_ENTITY:
            team = _validate(TeamPayload.model_validate, response.json(), "team")
            return Committed(str(team.id))
        # the team exists already: adopt it
        existing = self._http.fetch_one(f"orgs/{org}/teams/{entity.handle}")
        if existing is None:
            raise ApplyError(f"GitHub refused to create team {entity.key}: {response.text}")
        log.info("team %s already exists", entity.key)
        return Committed(str(_validate(TeamPayload.model_validate, existing, "team").id))

    def _create_repo(self, entity: EntityRef, fields: dict[str, object]) -> Committed:
        org = _owner(entity)
        response = self._http.send(
            "POST",
            f"orgs/{org}/repos",
            json={
                "name": fields["name"],
                "description": fields["description"],
                "homepage": fields["homepage"],
                "auto_init": True,
            },
            allow=(httpx.codes.UNPROCESSABLE_ENTITY,),
        )
        if response.status_code != httpx.codes.UNPROCESSABLE_ENTITY:
            repo = _validate(RepoPayload.model_validate, response.json(), "repository")
            return Committed(repo.node_id)
        existing = self._http.fetch_one(f"repos/{org}/{entity.handle}")
        if existing is None:
            raise ApplyError(f"GitHub refused to create repository {entity.key}: {response.text}")
        log.info("repository %s already exists", entity.key)
        return Committed(_validate(RepoPayload.model_validate, existing, "repository").node_id)

    def _create_branch_protection(
        self, entity: EntityRef, fields: dict[str, object]
    ) -> Committed:
        if entity.parent is None:
            raise ApplyError(f"{entity} is not attached to a repository")
        repo = entity.parent
        inputs = {
            BRANCH_PROTECTION_INPUTS[name]: _graphql_value(value) for name, value in fields.items()
        }

        # a rule for the same pattern may exist from an interrupted run
        existing = {
            rule.pattern: rule
            for rule in GitHubRead(self._http).branch_protections(_owner(repo), repo.handle)
        }
        rule = existing.get(str(fields["pattern"]))
        if rule is not None:
            log.info("branch protection %s already exists, updating it", entity.key)
            self._http.graphql(
                UPDATE_BRANCH_PROTECTION_MUTATION,
                {"input": {"branchProtectionRuleId": rule.remote_id, **inputs}},
            )
            return Committed(rule.remote_id)

        data = self._http.graphql(
            CREATE_BRANCH_PROTECTION_MUTATION,
            {"input": {"repositoryId": _committed(repo), **inputs}},
        )
        rule_id = _dig(data, "createBranchProtectionRule", "branchProtectionRule", "id")
        if not isinstance(rule_id, str):
            raise MalformedResponseError("github: branch protection created without an id")
        return Committed(rule_id)

    # edit

    def edit(self, action: EditField) -> None:
        entity = action.entity
        value = action.new
        match entity.kind:
            case EntityKind.TEAM:
                self._http.send(
                    "PATCH",
                    f"orgs/{_owner(entity)}/teams/{entity.handle}",
                    json={action.field: value},
                )
            case EntityKind.REPOSITORY:
                self._http.send(
                    "PATCH",
                    f"repos/{_owner(entity)}/{entity.handle}",
                    json={action.field: value},
                )
            case EntityKind.MEMBERSHIP:
                team = self._parent(entity)
                self._put_membership(team, entity.handle, str(value))
            case EntityKind.REPO_PERMISSION:
                repo = self._parent(entity)
                if TEAM_GRANT in entity.key:
                    self._put_team_grant(repo, entity.handle, str(value))
                else:
                    self._put_collaborator(repo, entity.handle, str(value))
            case EntityKind.BRANCH_PROTECTION:
                self._http.graphql(
                    UPDATE_BRANCH_PROTECTION_MUTATION,
                    {
                        "input": {
                            "branchProtectionRuleId": _committed(entity),
                            BRANCH_PROTECTION_INPUTS[action.field]: _graphql_value(value),
                        }
                    },
                )
            case _:
                raise ApplyError(f"cannot edit {entity.kind} on GitHub")

    # relations

    def add_relation(self, action: AddRelation) -> None:
        entity = action.entity
        target = action.related.target
        role = action.related.role
        match (entity.kind, target.kind):
            case (EntityKind.TEAM, EntityKind.USER):
                self._put_membership(entity, target.handle, role or "member")
            case (EntityKind.REPOSITORY, EntityKind.TEAM):
                self._put_team_grant(entity, target.handle, role or "pull")
            case (EntityKind.REPOSITORY, EntityKind.USER):
                self._put_collaborator(entity, target.handle, role or "pull")
            case (EntityKind.APP_INSTALLATION, EntityKind.REPOSITORY):
                repo_id = self._repo_database_id(target)
                self._http.send(
                    "PUT", f"user/installations/{_committed(entity)}/repositories/{repo_id}"
                )
            case _:
                raise ApplyError(f"cannot add {target.kind} to {entity.kind} on GitHub")

    def remove_relation(self, action: RemoveRelation) -> None:
        entity = action.entity
        target = action.related.target
        gone = (httpx.codes.NOT_FOUND,)
        match (entity.kind, target.kind):
            case (EntityKind.TEAM, EntityKind.USER):
                self._http.send(
                    "DELETE",
                    f"orgs/{_owner(entity)}/teams/{entity.handle}/memberships/{target.handle}",
                    allow=gone,
                )
            case (EntityKind.REPOSITORY, EntityKind.TEAM):
                org = _owner(entity)
                self._http.send(
                    "DELETE",
                    f"orgs/{org}/teams/{target.handle}/repos/{org}/{entity.handle}",
                    allow=gone,
                )
            case (EntityKind.REPOSITORY, EntityKind.USER):
                self._http.send(
                    "DELETE",
                    f"repos/{_owner(entity)}/{entity.handle}/collaborators/{target.handle}",
                    allow=gone,
                )
            case (EntityKind.REPOSITORY, EntityKind.BRANCH_PROTECTION):
                self._delete_branch_protection(target)
            case (EntityKind.APP_INSTALLATION, EntityKind.REPOSITORY):
                repo_id = self._repo_database_id(target)
                self._http.send(
                    "DELETE",
                    f"user/installations/{_committed(entity)}/repositories/{repo_id}",
                    allow=gone,
                )
            case _:
                raise ApplyError(f"cannot remove {target.kind} from {entity.kind} on GitHub")

    # helpers

    @staticmethod
    def _parent(entity: EntityRef) -> EntityRef:
        if entity.parent is None:
            raise ApplyError(f"{entity} has no owning entity")
        return entity.parent

    def _put_membership(self, team: EntityRef, login: str, role: str) -> None:
        self._http.send(
            "PUT",
            f"orgs/{_owner(team)}/teams/{team.handle}/memberships/{login}",
            json={"role": role},
        )

    def _put_team_grant(self, repo: EntityRef, slug: str, permission: str) -> None:
        org = _owner(repo)
        self._http.send(
            "PUT",
            f"orgs/{org}/teams/{slug}/repos/{org}/{repo.handle}",
            json={"permission": permission},
        )

    def _put_collaborator(self, repo: EntityRef, login: str, permission: str) -> None:
        self._http.send(
            "PUT",
            f"repos/{_owner(repo)}/{repo.handle}/collaborators/{login}",
            json={"permission": permission},
        )

    def _repo_database_id(self, repo: EntityRef) -> int:
        payload = self._http.fetch_one(f"repos/{_owner(repo)}/{repo.handle}")
        if payload is None:
            raise ApplyError(f"repository {repo.key} does not exist")
        return _validate(RepoPayload.model_validate, payload, "repository").id

    def _delete_branch_protection(self, rule: EntityRef) -> None:
        try:
            self._http.graphql(
                DELETE_BRANCH_PROTECTION_MUTATION,
                {"input": {"branchProtectionRuleId": _committed(rule)}},
            )
        except GraphQLError as exc:
            if not exc.is_not_found:
                raise
            log.info("branch protection %s is already gone", rule.key)
