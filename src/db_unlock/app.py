"""Main application — detects the lock, prompts for the password, dispatches commands."""

from __future__ import annotations

import asyncio
import sys

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML

from db_unlock import ui
from db_unlock.commands.database import cmd_forget, cmd_new, cmd_status
from db_unlock.commands.registry import CommandRegistry
from db_unlock.config import load_settings, set_database_path
from db_unlock.keychain import KeyringSecretStore, SecretStore
from db_unlock.log import setup_logging
from db_unlock.models import DatabaseStatus, Settings, UnlockState
from db_unlock.unlock import DatabaseUnlockService


class App:
    def __init__(self, settings: Settings, keychain: SecretStore | None = None) -> None:
        self.settings = settings
        self.keychain = keychain or KeyringSecretStore()
        self.service = DatabaseUnlockService(
            self.keychain,
            label=settings.keychain_label,
            cipher=settings.cipher,
        )
        self.state = UnlockState(connection_string=settings.database_path)
        self.registry = CommandRegistry()
        self._register_commands()

        # No history: whatever is typed here may be a password.
        self.session: PromptSession = PromptSession(
            completer=WordCompleter(self.registry.command_names, sentence=True),
        )

    def _register_commands(self) -> None:
        r = self.registry
        r.register("status", cmd_status, aliases=["st", "info"], description="Show database and keychain state")
        r.register("new", cmd_new, aliases=["reset"], description="Archive this database and start over")
        r.register("forget", cmd_forget, description="Remove the stored password from the keychain")
        r.register("help", lambda app, args: app._cmd_help(args), aliases=["h", "?"], description="Show help")
        r.register("quit", lambda app, args: app._cmd_quit(args), aliases=["q", "exit"], description="Exit without unlocking")

    def _cmd_help(self, args: list[str]) -> None:
        ui.print_help(self.registry.commands)

    def _cmd_quit(self, args: list[str]) -> None:
        ui.console.print()
        ui.print_info("Database left locked.")
        ui.console.print()
        sys.exit(1)

    def _on_unlocked(self) -> None:
        ui.print_success("Database unlocked.")
        if self.keychain.is_available():
            ui.print_info("The password is remembered; next time it unlocks automatically.")
        ui.console.print()

    def _dispatch(self, user_input: str) -> None:
        command, name, args = self.registry.resolve(user_input)
        if command is None:
            ui.print_error(f"Unknown command: /{name}")
            ui.print_info("Type /help for a list of commands.")
            return
        try:
            command.handler(self, args)
        except Exception as e:
            ui.print_error(f"Error: {e}")

    def _try_unlock(self, password: str) -> bool:
        with ui.console.status("[info]Verifying password...[/info]", spinner="dots"):
            result = asyncio.run(self.service.unlock_database(self.state.connection_string, password))
        if not result.success:
            ui.print_error(result.error_message)
            return False
        self.state.mark_unlocked(password)
        return True

    def _ensure_database_path(self) -> bool:
        if self.settings.database_path:
            return True
        path = ui.prompt_input("Database path")
        if not path:
            ui.print_error("A database path is required.")
            return False
        self.settings.database_path = path
        set_database_path(path)
        return True

    def run(self) -> int:
        """Detect the lock state and prompt until unlocked. Returns the exit code."""
        ui.print_banner()

        if not self._ensure_database_path():
            return 1

        try:
            with ui.console.status("[info]Checking database...[/info]", spinner="dots"):
                self.state = asyncio.run(self.service.prepare(self.settings.database_path))
        except ValueError as e:
            ui.print_error(f"Invalid database setting: {e}")
            return 1
        self.state.on_unlock_success(self._on_unlocked)

        if self.state.status is DatabaseStatus.UNREADABLE:
            ui.print_error(f"Could not open database: {self.state.error}")
            return 1

        if not self.state.needs_unlock:
            if self.state.status is DatabaseStatus.ENCRYPTED:
                ui.print_success("Database unlocked with the stored password.")
            elif self.state.status is DatabaseStatus.PLAINTEXT:
                ui.print_info("Database is not encrypted; nothing to unlock.")
            else:
                ui.print_info("Database does not exist yet; nothing to unlock.")
            ui.console.print()
            return 0

        ui.print_status(self.state, keychain_available=self.keychain.is_available())
        ui.print_info("This database is encrypted. Enter its password, or type /help.")
        ui.console.print()

        while True:
            try:
                user_input = self.session.prompt(HTML("<b><style fg='cyan'>password</style></b> <b>&gt;</b> "), is_password=True)
            except KeyboardInterrupt:
                continue
            except EOFError:
                self._cmd_quit([])
            if not user_input:
                continue
            if user_input.startswith("/"):
                self._dispatch(user_input)
                continue
            if self._try_unlock(user_input):
                return 0


cli = typer.Typer(
    name="db-unlock",
    help="Unlock an encrypted SQLCipher database and remember its password.",
    add_completion=False,
)


@cli.command()
def main(
    database: str | None = typer.Option(
        None, "--database", "-d", help="Database path or connection string"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"
    ),
) -> None:
    """Check the database and prompt for its password if it is locked."""
    try:
        settings = load_settings()
    except ValueError as e:
        ui.print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1)
    if database:
        settings.database_path = database
    if log_level:
        settings.log_level = log_level
    setup_logging(settings.log_level)

    try:
        code = App(settings).run()
    except KeyboardInterrupt:
        ui.console.print()
        ui.print_info("Goodbye!")
        code = 1
    raise typer.Exit(code)
