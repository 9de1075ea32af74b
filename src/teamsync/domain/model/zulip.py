"""Desired and live state snapshots for Zulip user groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredUserGroup:
    name: str
    description: str = ""
    members: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class ZulipDesired:
    groups: tuple[DesiredUserGroup, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveUserGroup:
    remote_id: str
    name: str
    description: str
    members: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class ZulipLive:
    groups: Mapping[str, LiveUserGroup] = field(default_factory=dict)
