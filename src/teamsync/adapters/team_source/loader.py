"""Load the team definitions document from a local path or an HTTP(S) URL."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from teamsync.domain.model import (
    BranchProtectionSettings,
    DesiredBranchProtection,
    DesiredMember,
    DesiredOrg,
    DesiredRepo,
    DesiredState,
    DesiredTeam,
    DesiredUserGroup,
    GitHubDesired,
    ZulipDesired,
)

from .schema import TeamDocument

if TYPE_CHECKING:
    from .schema import (
        BranchProtectionDefinition,
        OrgDefinition,
        RepoDefinition,
        TeamDefinition,
        ZulipDefinition,
    )

log = getLogger(__name__)

DOCUMENT_NAME = "teams.json"
DEFAULT_TIMEOUT_SECONDS = 30.0


class TeamSourceError(RuntimeError):
    """Raised when the team definitions cannot be read or are invalid."""


class JsonTeamSource:
    """Team definitions stored as one JSON document.

    ``location`` is a file, a directory holding ``teams.json``, or an
    ``http(s)`` URL of the document.
    """

    def __init__(
        self,
        location: str | Path,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.location = str(location)
        self._transport = transport
        self._timeout = timeout

    def load(self) -> DesiredState:
        raw = self._read()
        try:
            document = TeamDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise TeamSourceError(f"invalid team definitions in {self.location}") from exc
        state = translate_document(document)
        log.info(
            "loaded %d GitHub organization(s) and %d Zulip group(s) from %s",
            len(state.github.orgs),
            len(state.zulip.groups),
            self.location,
        )
        return state

    def _read(self) -> bytes:
        if self.location.startswith(("http://", "https://")):
            return self._download()
        path = Path(self.location)
        if path.is_dir():
            path = path / DOCUMENT_NAME
        try:
            return path.read_bytes()
        except OSError as exc:
            raise TeamSourceError(f"cannot read team definitions from {path}") from exc

    def _download(self) -> bytes:
        try:
            with httpx.Client(
                transport=self._transport, timeout=self._timeout, follow_redirects=True
            ) as client:
                response = client.get(self.location)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TeamSourceError(f"cannot download team definitions from {self.location}") from exc
        return response.content


def translate_document(document: TeamDocument) -> DesiredState:
    return DesiredState(
        github=GitHubDesired(orgs=tuple(_org(org) for org in document.github.orgs)),
        zulip=_zulip(document.zulip),
    )


def _org(org: OrgDefinition) -> DesiredOrg:
    return DesiredOrg(
        name=org.name,
        teams=tuple(_team(team) for team in org.teams),
        repos=tuple(_repo(repo) for repo in org.repos),
    )


def _team(team: TeamDefinition) -> DesiredTeam:
    return DesiredTeam(
        name=team.name,
        slug=team.slug,
        description=team.description,
        privacy=team.privacy,
        members=tuple(DesiredMember(user_id=member.id, login=member.login) for member in team.members),
    )


def _protection(rule: BranchProtectionDefinition) -> DesiredBranchProtection:
    return DesiredBranchProtection(
        pattern=rule.pattern,
        settings=BranchProtectionSettings(
            is_admin_enforced=rule.is_admin_enforced,
            dismisses_stale_reviews=rule.dismisses_stale_reviews,
            requires_approving_reviews=rule.requires_approving_reviews,
            required_approving_review_count=rule.required_approving_review_count,
            requires_status_checks=bool(rule.required_status_checks),
            required_status_check_contexts=tuple(sorted(rule.required_status_checks)),
        ),
    )


def _repo(repo: RepoDefinition) -> DesiredRepo:
    return DesiredRepo(
        name=repo.name,
        description=repo.description,
        homepage=repo.homepage or None,
        archived=repo.archived,
        teams=dict(repo.teams),
        collaborators=dict(repo.collaborators),
        branch_protections=tuple(_protection(rule) for rule in repo.branch_protections),
        apps=frozenset(repo.apps),
    )


def _zulip(zulip: ZulipDefinition) -> ZulipDesired:
    return ZulipDesired(
        groups=tuple(
            DesiredUserGroup(
                name=group.name,
                description=group.description,
                members=frozenset(group.members),
            )
            for group in zulip.groups
        )
    )
