"""Confirmation gate configuration.

The approval hash and approver are supplied out-of-band (the approval endpoint
re-runs the tool with both variables set) and are consumed once per run.
"""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_var, require_env_vars


@dataclass(frozen=True, slots=True)
class ConfirmationConfig:
    stream: str
    topic: str
    base_url: str


@dataclass(frozen=True, slots=True)
class Approval:
    diff_hash: str
    approver: str


def get_confirmation_config() -> ConfirmationConfig:
    values = require_env_vars(
        ("CONFIRMATION_STREAM", "CONFIRMATION_TOPIC", "CONFIRMATION_BASE_URL")
    )
    return ConfirmationConfig(
        stream=values["CONFIRMATION_STREAM"],
        topic=values["CONFIRMATION_TOPIC"],
        base_url=values["CONFIRMATION_BASE_URL"].rstrip("/"),
    )


def get_approval() -> Approval | None:
    """Return the externally supplied approval, if any.

    An approval hash without an approver is a configuration error: every applied
    plan must be attributable.
    """

    diff_hash = optional_env_var("CONFIRMATION_APPROVED_HASH")
    if diff_hash is None:
        return None
    return Approval(diff_hash=diff_hash, approver=require_env_var("CONFIRMATION_APPROVER"))
