from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from teamsync.adapters.platform_http import PlatformAPIError
from teamsync.app import (
    GitHubService,
    SyncMode,
    SyncRequest,
    ZulipService,
    format_causal_chain,
    synchronize,
)
from teamsync.config import Approval, MissingConfigurationError
from teamsync.domain.apply import ActionStatus
from teamsync.domain.confirmation import STALE_BANNER, ConfirmationGate, ConfirmationState
from teamsync.domain.model import (
    DesiredOrg,
    DesiredState,
    DesiredUserGroup,
    GitHubDesired,
    LiveOrg,
    LiveUserGroup,
    Platform,
    ZulipDesired,
    ZulipLive,
)
from tests.helpers.services import (
    FailingReader,
    FakeChannel,
    FakeTeamSource,
    RecordingWriter,
    StaticReader,
)
from tests.helpers.snapshots import ORG, desired_team, github_live, live_team

APPROVAL_URL = "https://approve.example.org/confirm"


def _desired() -> DesiredState:
    return DesiredState(
        github=GitHubDesired(orgs=(DesiredOrg(name=ORG, teams=(desired_team("lang", [1]),)),)),
        zulip=ZulipDesired(groups=(DesiredUserGroup(name="lang", members=frozenset({1, 2})),)),
    )


def _zulip_live() -> ZulipLive:
    return ZulipLive(
        groups={
            "lang": LiveUserGroup(
                remote_id="10", name="lang", description="", members=frozenset({1})
            )
        }
    )


@dataclass
class World:
    """Fake services wired into ``synchronize``."""

    github_reader: StaticReader[GitHubDesired, object] = field(
        default_factory=lambda: StaticReader(
            github_live(LiveOrg(name=ORG, teams={"lang": live_team("lang", {})}), user_ids=(1,))
        )
    )
    zulip_reader: StaticReader[ZulipDesired, ZulipLive] | FailingReader = field(
        default_factory=lambda: StaticReader(_zulip_live())
    )
    github_writer: RecordingWriter = field(default_factory=RecordingWriter)
    zulip_writer: RecordingWriter = field(default_factory=RecordingWriter)
    channel: FakeChannel = field(default_factory=FakeChannel)
    ignored_orgs: tuple[str, ...] = ()
    approval: Approval | None = None

    def run(self, request: SyncRequest):  # noqa: ANN201
        return synchronize(
            request,
            team_source=FakeTeamSource(_desired()),
            github_factory=lambda: GitHubService(
                reader=self.github_reader,  # type: ignore[arg-type]
                writer=self.github_writer,
                ignored_orgs=self.ignored_orgs,
            ),
            zulip_factory=lambda: ZulipService(
                reader=self.zulip_reader,  # type: ignore[arg-type]
                writer=self.zulip_writer,
            ),
            gate_factory=lambda: ConfirmationGate(self.channel, approval_base_url=APPROVAL_URL),
            approval_provider=lambda: self.approval,
        )

    @property
    def writes(self) -> list[str]:
        return self.github_writer.calls + self.zulip_writer.calls


def test_print_plan_never_applies() -> None:
    world = World()

    report = world.run(SyncRequest(mode=SyncMode.PRINT_PLAN, live=True))

    assert report.ok
    assert [outcome.platform for outcome in report.outcomes] == [Platform.GITHUB, Platform.ZULIP]
    assert all(outcome.diff is not None and len(outcome.diff) == 1 for outcome in report.outcomes)
    assert all(outcome.report is None for outcome in report.outcomes)
    assert world.writes == []
    assert world.channel.messages == []


def test_dry_run_reports_without_writing() -> None:
    world = World()

    report = world.run(SyncRequest())

    assert report.ok
    assert world.writes == []
    zulip = report.outcome(Platform.ZULIP)
    assert zulip is not None and zulip.report is not None
    assert zulip.report.count(ActionStatus.DRY_RUN) == 1


def test_live_run_applies_every_service() -> None:
    world = World()

    report = world.run(SyncRequest(live=True))

    assert report.ok
    assert len(world.github_writer.calls) == 1
    assert len(world.zulip_writer.calls) == 1
    github = report.outcome(Platform.GITHUB)
    assert github is not None and github.report is not None
    assert github.report.count(ActionStatus.APPLIED) == 1


def test_only_selected_services_are_built() -> None:
    world = World()

    def no_github() -> GitHubService:
        pytest.fail("GitHub should not be built")

    report = synchronize(
        SyncRequest(services=(Platform.ZULIP,), live=True),
        team_source=FakeTeamSource(_desired()),
        github_factory=no_github,
        zulip_factory=lambda: ZulipService(
            reader=world.zulip_reader,  # type: ignore[arg-type]
            writer=world.zulip_writer,
        ),
    )

    assert [outcome.platform for outcome in report.outcomes] == [Platform.ZULIP]
    assert len(world.zulip_writer.calls) == 1


def test_failing_service_does_not_stop_the_others() -> None:
    error = PlatformAPIError("zulip: GET user_groups failed with 500", status_code=500)
    world = World(zulip_reader=FailingReader(error))

    report = world.run(SyncRequest(live=True))

    assert not report.ok
    zulip = report.outcome(Platform.ZULIP)
    assert zulip is not None and zulip.error is error
    assert len(world.github_writer.calls) == 1


def test_missing_configuration_only_fails_that_service() -> None:
    error = MissingConfigurationError("Missing configuration for: ZULIP_API_KEY")
    github_writer = RecordingWriter()

    def missing() -> ZulipService:
        raise error

    report = synchronize(
        SyncRequest(live=True),
        team_source=FakeTeamSource(_desired()),
        github_factory=lambda: GitHubService(
            reader=World().github_reader,  # type: ignore[arg-type]
            writer=github_writer,
        ),
        zulip_factory=missing,
    )

    assert not report.ok
    zulip = report.outcome(Platform.ZULIP)
    assert zulip is not None and zulip.error is error and zulip.diff is None
    github = report.outcome(Platform.GITHUB)
    assert github is not None and github.error is None
    assert len(github_writer.calls) == 1


def test_ignored_organizations_are_not_read() -> None:
    world = World(ignored_orgs=(ORG,))

    report = world.run(SyncRequest(services=(Platform.GITHUB,), live=True))

    assert report.ok
    assert world.github_reader.seen[0].orgs == ()
    assert world.github_writer.calls == []


def test_confirmation_publishes_the_plan_and_waits() -> None:
    world = World()

    report = world.run(SyncRequest(mode=SyncMode.CONFIRM, live=True))

    assert report.confirmation is not None
    assert report.confirmation.state is ConfirmationState.PROPOSED
    assert world.writes == []
    (message,) = world.channel.messages
    assert f"{APPROVAL_URL}/{report.confirmation.diff_hash}" in message


def test_approved_plan_is_applied_and_reported() -> None:
    world = World()
    proposed = world.run(SyncRequest(mode=SyncMode.CONFIRM, live=True)).confirmation
    assert proposed is not None
    world.approval = Approval(diff_hash=proposed.diff_hash, approver="alice")

    report = world.run(SyncRequest(mode=SyncMode.CONFIRM, live=True))

    assert report.ok
    assert report.confirmation is not None
    assert report.confirmation.state is ConfirmationState.APPROVED
    assert len(world.writes) == 2
    assert world.channel.messages[-1] == (
        f"Applied plan `{proposed.diff_hash}`\nApproved by: `alice`"
    )


def test_stale_approval_republishes_and_does_not_apply() -> None:
    world = World(approval=Approval(diff_hash="0" * 64, approver="alice"))

    report = world.run(SyncRequest(mode=SyncMode.CONFIRM, live=True))

    assert report.confirmation is not None
    assert report.confirmation.state is ConfirmationState.STALE
    assert world.writes == []
    (message,) = world.channel.messages
    assert message.startswith(STALE_BANNER)


def test_confirmation_is_not_requested_for_a_partial_plan() -> None:
    world = World(zulip_reader=FailingReader(PlatformAPIError("zulip: unavailable")))

    report = world.run(SyncRequest(mode=SyncMode.CONFIRM, live=True))

    assert not report.ok
    assert report.confirmation is None
    assert world.channel.messages == []
    assert world.writes == []


def test_confirmation_is_skipped_when_nothing_changes() -> None:
    world = World(
        zulip_reader=StaticReader(
            ZulipLive(
                groups={
                    "lang": LiveUserGroup(
                        remote_id="10", name="lang", description="", members=frozenset({1, 2})
                    )
                }
            )
        )
    )

    report = world.run(SyncRequest(services=(Platform.ZULIP,), mode=SyncMode.CONFIRM))

    assert report.ok
    assert report.confirmation is None
    assert world.channel.messages == []


def test_causal_chain_lists_every_cause() -> None:
    try:
        try:
            raise ValueError("bad payload")
        except ValueError as exc:
            raise PlatformAPIError("github: request failed") from exc
    except PlatformAPIError as exc:
        chain = format_causal_chain(exc)

    assert chain == (
        "PlatformAPIError: github: request failed\n  caused by ValueError: bad payload"
    )
