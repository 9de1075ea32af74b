"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from teamsync.adapters.github import GitHubRead, GitHubWrite
from teamsync.adapters.team_source import DOCUMENT_NAME, JsonTeamSource
from teamsync.adapters.zulip import ZulipClient, ZulipStreamChannel
from teamsync.config import (
    get_approval,
    get_confirmation_config,
    get_github_config,
    get_zulip_config,
    optional_env_var,
)
from teamsync.domain.apply import ApplyExecutor
from teamsync.domain.confirmation import ConfirmationGate
from teamsync.domain.diff import diff_github, diff_zulip
from teamsync.domain.model import Platform

if TYPE_CHECKING:
    from teamsync.config import Approval
    from teamsync.domain.apply import ApplyReport
    from teamsync.domain.confirmation import ConfirmationRecord
    from teamsync.domain.diff import Diff
    from teamsync.domain.model import DesiredState, GitHubDesired
    from teamsync.domain.ports import ActionWriter, GitHubReader, TeamSource, ZulipReader

log = getLogger(__name__)

TEAM_SOURCE_ENV = "TEAMSYNC_TEAM_SOURCE"
SERVICE_ORDER = (Platform.GITHUB, Platform.ZULIP)


class SyncMode(StrEnum):
    APPLY = "apply"
    PRINT_PLAN = "print_plan"
    CONFIRM = "confirm"


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncRequest:
    """What one run should do.

    ``live`` is the only switch between dry-run and real writes; it is fixed
    for the whole run.
    """

    services: tuple[Platform, ...] = SERVICE_ORDER
    live: bool = False
    mode: SyncMode = SyncMode.APPLY
    team_source: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class GitHubService:
    reader: GitHubReader
    writer: ActionWriter
    ignored_orgs: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ZulipService:
    reader: ZulipReader
    writer: ActionWriter


@dataclass(frozen=True, slots=True)
class GitHubServiceDiff:
    diff: Diff
    writer: ActionWriter


@dataclass(frozen=True, slots=True)
class ZulipServiceDiff:
    diff: Diff
    writer: ActionWriter


type ServiceDiff = GitHubServiceDiff | ZulipServiceDiff


@dataclass(slots=True)
class ServiceOutcome:
    platform: Platform
    diff: Diff | None = None
    report: ApplyReport | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        return self.report is None or self.report.ok


@dataclass(slots=True)
class SyncReport:
    mode: SyncMode
    live: bool
    outcomes: list[ServiceOutcome] = field(default_factory=list["ServiceOutcome"])
    confirmation: ConfirmationRecord | None = None

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    def outcome(self, platform: Platform) -> ServiceOutcome | None:
        return next((o for o in self.outcomes if o.platform is platform), None)


def format_causal_chain(exc: BaseException) -> str:
    """Render ``exc`` followed by every ``__cause__``/``__context__`` link."""

    lines = [f"{type(exc).__name__}: {exc}"]
    seen = {id(exc)}
    current = exc.__cause__ or exc.__context__
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"  caused by {type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return "\n".join(lines)


def build_github_service() -> GitHubService:
    config = get_github_config()
    return GitHubService(
        reader=GitHubRead.from_config(config),
        writer=GitHubWrite.from_config(config),
        ignored_orgs=config.ignored_orgs,
    )


def build_zulip_service() -> ZulipService:
    client = ZulipClient.from_config(get_zulip_config())
    return ZulipService(reader=client, writer=client)


def build_confirmation_gate() -> ConfirmationGate:
    config = get_confirmation_config()
    channel = ZulipStreamChannel(ZulipClient.from_config(get_zulip_config()), config)
    return ConfirmationGate(channel, approval_base_url=config.base_url)


def default_team_source(location: str | None = None) -> JsonTeamSource:
    return JsonTeamSource(location or optional_env_var(TEAM_SOURCE_ENV) or DOCUMENT_NAME)


def synchronize(
    request: SyncRequest,
    *,
    team_source: TeamSource | None = None,
    github_factory: Callable[[], GitHubService] = build_github_service,
    zulip_factory: Callable[[], ZulipService] = build_zulip_service,
    gate_factory: Callable[[], ConfirmationGate] = build_confirmation_gate,
    approval_provider: Callable[[], Approval | None] = get_approval,
) -> SyncReport:
    """Reconcile the selected services against the team definitions.

    Services are processed in a fixed order and independently: a service that
    is missing configuration or fails to snapshot, diff or apply is recorded
    and the others continue. Loading the definitions and the confirmation
    step are fatal.
    """

    source = team_source or default_team_source(request.team_source)
    desired = source.load()
    report = SyncReport(mode=request.mode, live=request.live)
    log.info(
        "Starting sync: services=%s, live=%s, mode=%s",
        ",".join(request.services),
        request.live,
        request.mode,
    )

    planned: list[tuple[ServiceDiff, ServiceOutcome]] = []
    for platform in SERVICE_ORDER:
        if platform not in request.services:
            continue
        outcome = ServiceOutcome(platform=platform)
        report.outcomes.append(outcome)
        try:
            service_diff = _diff_service(platform, desired, github_factory, zulip_factory)
        except Exception as exc:
            log.exception(
                "%s: failed to compute the plan: %s", platform, format_causal_chain(exc)
            )
            outcome.error = exc
            continue
        outcome.diff = service_diff.diff
        planned.append((service_diff, outcome))
        log.info("plan:\n%s", service_diff.diff.render().rstrip())

    if request.mode is SyncMode.PRINT_PLAN:
        return report

    gate: ConfirmationGate | None = None

    if request.mode is SyncMode.CONFIRM:
        if not report.ok:
            log.error("not proposing a partial plan: some services failed to compute theirs")
            return report
        if all(service_diff.diff.is_empty for service_diff, _ in planned):
            log.info("nothing to confirm: every plan is empty")
            return report
        gate = gate_factory()
        approval = approval_provider()
        report.confirmation = gate.evaluate(
            [service_diff.diff for service_diff, _ in planned],
            approved_hash=approval.diff_hash if approval else None,
            approver=approval.approver if approval else None,
        )
        if not report.confirmation.allows_apply:
            log.info(
                "plan %s is %s, not applying",
                report.confirmation.diff_hash,
                report.confirmation.state,
            )
            return report

    for service_diff, outcome in planned:
        outcome.report = _apply(service_diff, live=request.live)

    if gate is not None and report.confirmation is not None and request.live and report.ok:
        gate.report_applied(report.confirmation)

    log.info("Finished sync: ok=%s", report.ok)
    return report


def _diff_service(
    platform: Platform,
    desired: DesiredState,
    github_factory: Callable[[], GitHubService],
    zulip_factory: Callable[[], ZulipService],
) -> ServiceDiff:
    match platform:
        case Platform.GITHUB:
            github = github_factory()
            github_desired = _without_ignored_orgs(desired.github, github.ignored_orgs)
            live = github.reader.snapshot(github_desired)
            return GitHubServiceDiff(diff_github(github_desired, live), github.writer)
        case Platform.ZULIP:
            zulip = zulip_factory()
            live = zulip.reader.snapshot(desired.zulip)
            return ZulipServiceDiff(diff_zulip(desired.zulip, live), zulip.writer)


def _without_ignored_orgs(desired: GitHubDesired, ignored: tuple[str, ...]) -> GitHubDesired:
    if not ignored:
        return desired
    skipped = sorted(org.name for org in desired.orgs if org.name in ignored)
    if skipped:
        log.info("ignoring GitHub organizations: %s", ", ".join(skipped))
    return replace(desired, orgs=tuple(org for org in desired.orgs if org.name not in ignored))


def _apply(service_diff: ServiceDiff, *, live: bool) -> ApplyReport | None:
    match service_diff:
        case GitHubServiceDiff(diff=diff, writer=writer):
            platform = Platform.GITHUB
        case ZulipServiceDiff(diff=diff, writer=writer):
            platform = Platform.ZULIP

    if diff.is_empty:
        log.info("%s: nothing to apply", platform)
        return None

    apply_report = ApplyExecutor(writer, dry_run=not live).apply(diff)
    failure = apply_report.failure
    if failure is not None and failure.error is not None:
        log.error(
            "%s: apply stopped at %s: %s",
            platform,
            failure.action.describe(),
            format_causal_chain(failure.error),
        )
    return apply_report
