"""Registry of named commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class Command:
    """A command name with its arguments."""

    name: str
    args: list[str] = field(default_factory=list)


class CommandError(Exception):
    """A command could not be carried out."""


Handler = Callable[[Any, Command], Any]


class Commands:
    """Maps command names to their handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, handler: Handler) -> None:
        """Bind ``handler`` to ``name``, replacing any earlier binding."""
        self._handlers[name] = handler

    def run(self, state: Any, cmd: Command) -> Any:
        """Run the handler registered for ``cmd.name``."""
        handler = self._handlers.get(cmd.name)
        if handler is None:
            raise CommandError("command not found")
        return handler(state, cmd)