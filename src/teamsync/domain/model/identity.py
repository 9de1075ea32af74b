"""Entity identity and references.

An entity either exists on the remote platform (``Committed``) or is proposed by
the current run and not created yet (``Pending``). Actions reference pending
entities by their local key until the apply pass resolves them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .enums import EntityKind


@dataclass(frozen=True, slots=True)
class Committed:
    remote_id: str

    def __str__(self) -> str:
        return self.remote_id


@dataclass(frozen=True, slots=True)
class Pending:
    local_key: str

    @classmethod
    def of(cls, kind: EntityKind, key: str) -> Pending:
        """Pending identity for entity ``key`` of ``kind``; keys only repeat across kinds."""

        return cls(f"{kind}:{key}")

    def __str__(self) -> str:
        return f"<pending {self.local_key}>"


type Identity = Committed | Pending


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityRef:
    """Typed pointer to an entity inside one platform diff.

    ``key`` is the natural key (``org/slug``, ``org/repo``...) and is unique per
    kind within a diff. ``label`` is the handle write endpoints address the
    entity by (login, slug, pattern); ``parent`` links relation-like entities
    (memberships, permissions, protection rules) to their owner.
    """

    kind: EntityKind
    key: str
    identity: Identity
    label: str | None = None
    parent: EntityRef | None = None

    @property
    def is_pending(self) -> bool:
        return isinstance(self.identity, Pending)

    @property
    def handle(self) -> str:
        return self.label if self.label is not None else self.key

    def pending_keys(self) -> tuple[str, ...]:
        """Local keys of every pending entity this reference depends on."""

        keys: list[str] = []
        if self.parent is not None:
            keys.extend(self.parent.pending_keys())
        if isinstance(self.identity, Pending):
            keys.append(self.identity.local_key)
        return tuple(keys)

    def resolve(self, identities: dict[str, Identity]) -> EntityRef:
        """Return a copy with pending identities replaced from ``identities``."""

        parent = self.parent.resolve(identities) if self.parent is not None else None
        identity = self.identity
        if isinstance(identity, Pending):
            identity = identities.get(identity.local_key, identity)
        if parent is self.parent and identity is self.identity:
            return self
        return replace(self, identity=identity, parent=parent)

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "kind": str(self.kind),
            "key": self.key,
            "identity": identity_payload(self.identity),
        }
        if self.label is not None:
            payload["label"] = self.label
        if self.parent is not None:
            payload["parent"] = self.parent.to_payload()
        return payload

    def __str__(self) -> str:
        return f"{self.kind} {self.key}"


def identity_payload(identity: Identity) -> dict[str, str]:
    match identity:
        case Committed(remote_id=remote_id):
            return {"committed": remote_id}
        case Pending(local_key=local_key):
            return {"pending": local_key}
