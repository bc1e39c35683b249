"""Command registry — maps slash commands to handler functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from db_unlock.app import App

CommandHandler = Callable[["App", list[str]], None]


@dataclass
class Command:
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._alias_map: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        aliases: list[str] | None = None,
        description: str = "",
    ) -> None:
        cmd = Command(name=name, handler=handler, aliases=aliases or [], description=description)
        self._commands[name] = cmd
        for alias in cmd.aliases:
            self._alias_map[alias] = name

    def get(self, name: str) -> Command | None:
        if name in self._commands:
            return self._commands[name]
        canonical = self._alias_map.get(name)
        if canonical:
            return self._commands.get(canonical)
        return None

    @property
    def command_names(self) -> list[str]:
        """Every name and alias, slash-prefixed, for prompt completion."""
        return sorted("/" + n for n in [*self._commands, *self._alias_map])

    @property
    def commands(self) -> list[Command]:
        return list(self._commands.values())

    def resolve(self, user_input: str) -> tuple[Command | None, str, list[str]]:
        """Split ``/name arg ...`` into the matching command, its name and args."""
        parts = user_input.removeprefix("/").split()
        if not parts:
            return None, "", []
        name = parts[0].lower()
        return self.get(name), name, parts[1:]
