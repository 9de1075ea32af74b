from __future__ import annotations

import pytest

from teamsync.adapters.platform_http import PlatformAPIError
from teamsync.app import ServiceOutcome, SyncMode, SyncReport, SyncRequest
from teamsync.config import MissingConfigurationError
from teamsync.domain.model import Platform
from teamsync.ui import cli as cli_module


def _capture(monkeypatch: pytest.MonkeyPatch, report: SyncReport | None = None) -> list[SyncRequest]:
    captured: list[SyncRequest] = []

    def fake_synchronize(request: SyncRequest) -> SyncReport:
        captured.append(request)
        return report or SyncReport(mode=request.mode, live=request.live)

    monkeypatch.setattr(cli_module, "synchronize", fake_synchronize)
    return captured


def test_main_cli_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    cli_module.main([])

    (request,) = captured
    assert request.services == (Platform.GITHUB, Platform.ZULIP)
    assert request.live is False
    assert request.mode is SyncMode.APPLY
    assert request.team_source is None


def test_main_cli_with_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    cli_module.main(["zulip", "--live", "--require-confirmation", "--team-repo", "/srv/team"])

    (request,) = captured
    assert request.services == (Platform.ZULIP,)
    assert request.live is True
    assert request.mode is SyncMode.CONFIRM
    assert request.team_source == "/srv/team"


def test_main_cli_only_print_plan(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    cli_module.main(["--only-print-plan", "zulip", "github"])

    assert captured[0].mode is SyncMode.PRINT_PLAN
    assert captured[0].services == (Platform.GITHUB, Platform.ZULIP)


@pytest.mark.parametrize(
    "argv",
    [
        ["--only-print-plan", "--require-confirmation"],
        ["gitlab"],
    ],
)
def test_main_cli_invalid_arguments(monkeypatch: pytest.MonkeyPatch, argv: list[str]) -> None:
    captured = _capture(monkeypatch)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(argv)

    assert excinfo.value.code == 2
    assert captured == []


def test_main_cli_configuration_error_exits_2(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_synchronize(_request: SyncRequest) -> SyncReport:
        raise MissingConfigurationError("Missing configuration for: CONFIRMATION_BASE_URL")

    monkeypatch.setattr(cli_module, "synchronize", fake_synchronize)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 2


def test_main_cli_fatal_error_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_synchronize(_request: SyncRequest) -> SyncReport:
        raise PlatformAPIError("github: bad gateway", status_code=502)

    monkeypatch.setattr(cli_module, "synchronize", fake_synchronize)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 1


def test_main_cli_failed_service_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    report = SyncReport(
        mode=SyncMode.APPLY,
        live=True,
        outcomes=[ServiceOutcome(platform=Platform.ZULIP, error=RuntimeError("down"))],
    )
    _capture(monkeypatch, report)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["--live"])

    assert excinfo.value.code == 1
