"""Allocation scopes that documents are associated with."""

from __future__ import annotations

import itertools
from typing import Final

_arena_ids = itertools.count(1)


class Arena:
    """
    Identity handle for the allocation scope owning one or more documents.

    Python manages the memory itself, so an arena carries no storage. It
    decides whether a transfer between two values may hand over the payload
    (same arena) or has to deep-copy it (different arenas). Arenas compare
    by identity.
    """

    __slots__ = ("id", "name")

    def __init__(self, name: str = "") -> None:
        if not isinstance(name, str):
            raise TypeError("name must be a string")
        self.id: Final = next(_arena_ids)
        self.name: Final = name or f"arena-{self.id}"

    def __repr__(self) -> str:
        return f"Arena({self.name!r})"


_DEFAULT_ARENA: Final = Arena("default")


def default_arena() -> Arena:
    """Returns the process-wide arena used when none is given."""
    return _DEFAULT_ARENA


def resolve_arena(arena: Arena | None) -> Arena:
    if arena is None:
        return _DEFAULT_ARENA
    if not isinstance(arena, Arena):
        raise TypeError(
            f"arena must be an Arena, not {type(arena).__name__}"
        )
    return arena
