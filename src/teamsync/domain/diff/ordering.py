"""Dependency ordering for diff actions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .actions import CreateEntity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .actions import Action


class DiffError(ValueError):
    """Raised when a diff cannot be ordered into an executable sequence."""


def order_actions(actions: Sequence[Action]) -> tuple[Action, ...]:
    """Return ``actions`` so that every creation precedes the actions using it.

    Rules:
        - An action without pending dependencies has rank 0.
        - Otherwise its rank is one more than the highest rank among the
          creations it depends on.
        - Actions are stable-sorted by rank, so emission order breaks ties and
          identical input always yields identical output.
    """

    creators: dict[str, int] = {}
    for index, action in enumerate(actions):
        if isinstance(action, CreateEntity):
            if action.creates in creators:
                raise DiffError(f"entity {action.creates} is created twice")
            creators[action.creates] = index

    ranks: dict[int, int] = {}
    visiting: set[int] = set()

    def rank_of(index: int) -> int:
        if index in ranks:
            return ranks[index]
        if index in visiting:
            raise DiffError(f"dependency cycle through {actions[index].describe()}")
        visiting.add(index)
        rank = 0
        for key in actions[index].dependencies():
            creator = creators.get(key)
            if creator is None:
                raise DiffError(
                    f"{actions[index].describe()} references pending entity {key} "
                    "but no action creates it"
                )
            rank = max(rank, rank_of(creator) + 1)
        visiting.discard(index)
        ranks[index] = rank
        return rank

    order = sorted(range(len(actions)), key=lambda index: (rank_of(index), index))
    return tuple(actions[index] for index in order)
