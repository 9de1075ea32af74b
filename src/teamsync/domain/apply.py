"""Replay an ordered diff against a platform writer.

Failure policy is fail-fast and non-transactional: the first failing action
stops the diff, later actions are reported as skipped and nothing already
applied is rolled back. Every action is idempotent, so re-running the same
diff after fixing the cause converges to the same end state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from teamsync.domain.diff import AddRelation, CreateEntity, EditField, RemoveRelation
from teamsync.domain.model import Pending

if TYPE_CHECKING:
    from collections.abc import Iterator

    from teamsync.domain.diff import Action, Diff
    from teamsync.domain.model import Identity, Platform
    from teamsync.domain.ports import ActionWriter

log = getLogger(__name__)


class ApplyError(RuntimeError):
    """Raised when an action cannot be executed in the position it was given."""


class ActionStatus(StrEnum):
    APPLIED = "applied"
    DRY_RUN = "dry_run"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionResult:
    action: Action
    status: ActionStatus
    identity: Identity | None = None
    error: BaseException | None = None


@dataclass(slots=True)
class ApplyReport:
    """Per-action outcome of one diff, in diff order."""

    platform: Platform
    results: list[ActionResult] = field(default_factory=list["ActionResult"])

    def __iter__(self) -> Iterator[ActionResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def failure(self) -> ActionResult | None:
        return next((r for r in self.results if r.status is ActionStatus.FAILED), None)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def count(self, status: ActionStatus) -> int:
        return sum(1 for result in self.results if result.status is status)


class ApplyExecutor:
    """Execute diffs through one writer.

    ``dry_run`` is fixed at construction: a dry-run executor never calls the
    writer, but still resolves created entities to local placeholders so the
    actions that follow are evaluated and reported against them.
    """

    def __init__(self, writer: ActionWriter, *, dry_run: bool) -> None:
        self._writer = writer
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def apply(self, diff: Diff) -> ApplyReport:
        report = ApplyReport(platform=diff.platform)
        identities: dict[str, Identity] = {}
        actions = list(diff)

        for index, action in enumerate(actions):
            try:
                result = self._apply_one(action, identities)
            except Exception as exc:
                log.exception("%s: failed to %s", diff.platform, action.describe())
                report.results.append(
                    ActionResult(action=action, status=ActionStatus.FAILED, error=exc)
                )
                report.results.extend(
                    ActionResult(action=skipped, status=ActionStatus.SKIPPED)
                    for skipped in actions[index + 1 :]
                )
                log.error(
                    "%s: aborted after %d of %d actions",
                    diff.platform,
                    index,
                    len(actions),
                )
                break
            report.results.append(result)

        return report

    def _apply_one(self, action: Action, identities: dict[str, Identity]) -> ActionResult:
        missing = [key for key in action.dependencies() if key not in identities]
        if missing:
            raise ApplyError(
                f"{action.describe()} references {', '.join(missing)} before it is created"
            )
        resolved = action.resolve(identities)

        if self._dry_run:
            log.info("dry-run: %s", resolved.describe())
            identity: Identity | None = None
            if isinstance(resolved, CreateEntity):
                # the placeholder stays pending: nothing exists remotely
                identity = Pending(resolved.creates)
                identities[resolved.creates] = identity
            return ActionResult(action=action, status=ActionStatus.DRY_RUN, identity=identity)

        log.info("%s", resolved.describe())
        match resolved:
            case CreateEntity():
                committed = self._writer.create(resolved)
                identities[resolved.creates] = committed
                return ActionResult(action=action, status=ActionStatus.APPLIED, identity=committed)
            case EditField():
                self._writer.edit(resolved)
            case AddRelation():
                self._writer.add_relation(resolved)
            case RemoveRelation():
                self._writer.remove_relation(resolved)
        return ActionResult(action=action, status=ActionStatus.APPLIED)
