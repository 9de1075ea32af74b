"""Diff engine: pure functions from (desired, live) snapshots to ordered actions."""

from __future__ import annotations

from .actions import (
    Action,
    ActionOp,
    AddRelation,
    CreateEntity,
    Diff,
    EditField,
    FieldValue,
    Relation,
    RemoveRelation,
)
from .github import diff_github
from .ordering import DiffError, order_actions
from .zulip import diff_zulip

__all__ = [
    "Action",
    "ActionOp",
    "AddRelation",
    "CreateEntity",
    "Diff",
    "DiffError",
    "EditField",
    "FieldValue",
    "Relation",
    "RemoveRelation",
    "diff_github",
    "diff_zulip",
    "order_actions",
]
