"""Reversible credential mutations and the undo/redo log that replays them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, List, NamedTuple, Optional, Union


class Mutation(NamedTuple):
    """Effect of a command on one key; ``value is None`` removes the key."""

    key: str
    value: Optional[str]


@dataclass(frozen=True)
class Add:
    """Insertion of a key that was absent before."""

    key: str
    new_value: str
    kind: ClassVar[str] = "add"

    def forward(self) -> Mutation:
        return Mutation(self.key, self.new_value)

    def reverse(self) -> Mutation:
        return Mutation(self.key, None)


@dataclass(frozen=True)
class Update:
    """Replacement of an existing secret, remembering the one it displaced."""

    key: str
    old_value: str
    new_value: str
    kind: ClassVar[str] = "update"

    def forward(self) -> Mutation:
        return Mutation(self.key, self.new_value)

    def reverse(self) -> Mutation:
        return Mutation(self.key, self.old_value)


Command = Union[Add, Update]
Applier = Callable[[Mutation], None]


def command_for(key: str, previous: Optional[str], value: str) -> Command:
    """Return the command that moves *key* from *previous* to *value*."""

    if previous is None:
        return Add(key, value)
    return Update(key, previous, value)


class CommandLog:
    """Paired LIFO stacks of commands.

    The log does not know how to mutate anything itself. An *applier* is
    attached by the owner and receives the :class:`Mutation` to perform on
    undo (``reverse``) and redo (``forward``). A command only moves between
    stacks once its applier returned; if the applier raises, the command is
    left where it was and the exception propagates.
    """

    def __init__(self, apply: Optional[Applier] = None) -> None:
        self._apply = apply
        self._undo: List[Command] = []
        self._redo: List[Command] = []

    def attach(self, apply: Applier) -> None:
        self._apply = apply

    def record(self, command: Command) -> None:
        """Push a freshly applied *command* and invalidate the redo history."""

        self._undo.append(command)
        self._redo.clear()

    def undo(self) -> bool:
        if not self._undo:
            return False
        command = self._undo[-1]
        self._run(command.reverse())
        self._redo.append(self._undo.pop())
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        command = self._redo[-1]
        self._run(command.forward())
        self._undo.append(self._redo.pop())
        return True

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def peek_undo(self) -> Optional[Command]:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> Optional[Command]:
        return self._redo[-1] if self._redo else None

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def _run(self, mutation: Mutation) -> None:
        if self._apply is not None:
            self._apply(mutation)


__all__ = [
    "Add",
    "Applier",
    "Command",
    "CommandLog",
    "Mutation",
    "Update",
    "command_for",
]
