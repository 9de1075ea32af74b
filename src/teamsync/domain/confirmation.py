"""Confirmation gate binding an approved plan to the plan being executed.

Live state can move between the moment a reviewer approves a proposed plan
and the moment it runs. The gate therefore never trusts a stored intent: it
recomputes the hash of the freshly computed plan and compares it with the
approval supplied out-of-band.

States:
    proposed -> approved   (hash matches, apply may run)
    proposed -> stale      (hash differs, a new approval cycle is required)
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, replace
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from teamsync.domain.diff import Diff
    from teamsync.domain.ports import ReviewChannel

log = getLogger(__name__)

STALE_BANNER = "**The plan changed since it was approved, please approve again!**\n\n"


class ConfirmationState(StrEnum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    STALE = "stale"


class ConfirmationTransitionError(RuntimeError):
    """Raised when a record leaves a terminal state."""


@dataclass(frozen=True, slots=True, kw_only=True)
class ConfirmationRecord:
    diff_hash: str
    state: ConfirmationState = ConfirmationState.PROPOSED
    approver: str | None = None

    @property
    def allows_apply(self) -> bool:
        return self.state is ConfirmationState.APPROVED

    def approve(self, approver: str) -> ConfirmationRecord:
        self._require_proposed()
        return replace(self, state=ConfirmationState.APPROVED, approver=approver)

    def mark_stale(self) -> ConfirmationRecord:
        self._require_proposed()
        return replace(self, state=ConfirmationState.STALE)

    def _require_proposed(self) -> None:
        if self.state is not ConfirmationState.PROPOSED:
            raise ConfirmationTransitionError(
                f"confirmation for {self.diff_hash} is already {self.state}"
            )


def canonical_bytes(diffs: Sequence[Diff]) -> bytes:
    """Deterministic serialization of a run's plan: sorted keys, no whitespace."""

    payload = [diff.canonical_payload() for diff in diffs]
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def plan_hash(diffs: Sequence[Diff]) -> str:
    return hashlib.sha256(canonical_bytes(diffs)).hexdigest()


class ConfirmationGate:
    """Decide whether a freshly computed plan may be applied."""

    def __init__(self, channel: ReviewChannel, *, approval_base_url: str) -> None:
        self._channel = channel
        self._approval_base_url = approval_base_url.rstrip("/")

    def evaluate(
        self,
        diffs: Sequence[Diff],
        *,
        approved_hash: str | None = None,
        approver: str | None = None,
    ) -> ConfirmationRecord:
        record = ConfirmationRecord(diff_hash=plan_hash(diffs))

        if approved_hash is None:
            log.info("plan %s awaits approval", record.diff_hash)
            self._channel.publish(self.approval_message(diffs, record.diff_hash))
            return record

        if approver is None:
            raise ValueError("an approval hash must come with the approver identity")

        # bytes: compare_digest rejects non-ASCII str
        approved = approved_hash.strip().lower().encode()
        if hmac.compare_digest(approved, record.diff_hash.encode()):
            log.info("plan %s approved by %s", record.diff_hash, approver)
            return record.approve(approver)

        log.warning(
            "approved plan %s does not match the current plan %s",
            approved_hash,
            record.diff_hash,
        )
        self._channel.publish(STALE_BANNER + self.approval_message(diffs, record.diff_hash))
        return record.mark_stale()

    def report_applied(self, record: ConfirmationRecord) -> None:
        if not record.allows_apply:
            raise ConfirmationTransitionError(f"plan {record.diff_hash} was not approved")
        self._channel.publish(
            f"Applied plan `{record.diff_hash}`\nApproved by: `{record.approver}`"
        )

    def approval_message(self, diffs: Sequence[Diff], diff_hash: str) -> str:
        parts: list[str] = []
        for diff in diffs:
            parts.append(f"\n**{diff.platform}:**\n```text\n{diff.render()}```")
        parts.append(f"\nHash: `{diff_hash}`\n")
        parts.append(f"[Approve]({self._approval_base_url}/{diff_hash}) (requires authentication)\n")
        return "".join(parts)
