"""Named, reference counted sharing of connection and contract handles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class _Entry(Generic[T]):
    value: T
    holders: int


class SharedRegistry(Generic[T]):
    """Named shared objects with explicit reference counts.

    Call sites `acquire` a name to hold the shared object and `release` it when done;
    the last release closes the object (when it has a `close` method) and forgets it.
    Updating a shared object means building a new one and `replace`-ing the reference,
    never mutating the old one.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry[T]] = {}

    def acquire(self, name: str, factory: Callable[[], T]) -> T:
        """Hold the object registered under `name`, creating it with `factory` on first use.

        Arguments
        ---------
        name: str
            The instance name shared by every call site.
        factory: Callable[[], T]
            Builds the object. Only called when no object is registered under the name.

        Returns
        -------
        T
            The shared object.
        """
        entry = self._entries.get(name)
        if entry is None:
            # A failing factory registers nothing
            entry = _Entry(factory(), 0)
            self._entries[name] = entry
            logging.debug("Created shared instance %s", name)
        entry.holders += 1
        return entry.value

    def get(self, name: str) -> T:
        """Get the object registered under `name` without holding it."""
        entry = self._entries.get(name)
        if entry is None:
            raise KeyError(f"No shared instance named {name!r}")
        return entry.value

    def replace(self, name: str, value: T) -> None:
        """Point `name` at a newly built object, keeping the holder count."""
        entry = self._entries.get(name)
        if entry is None:
            raise KeyError(f"No shared instance named {name!r}")
        entry.value = value

    def holders(self, name: str) -> int:
        """The number of call sites currently holding `name`."""
        entry = self._entries.get(name)
        return 0 if entry is None else entry.holders

    def release(self, name: str) -> None:
        """Drop one hold on `name`, closing the object when it was the last one."""
        entry = self._entries.get(name)
        if entry is None:
            raise KeyError(f"No shared instance named {name!r}")
        entry.holders -= 1
        if entry.holders > 0:
            return
        del self._entries[name]
        close = getattr(entry.value, "close", None)
        if callable(close):
            close()
        logging.debug("Released shared instance %s", name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
