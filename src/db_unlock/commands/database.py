"""Database status, start-over and keychain commands."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

from db_unlock import ui

if TYPE_CHECKING:
    from db_unlock.app import App


def cmd_status(app: App, args: list[str]) -> None:
    ui.print_status(app.state, keychain_available=app.keychain.is_available())


def cmd_new(app: App, args: list[str]) -> None:
    path = app.state.database_path
    if path is None or not path.exists():
        ui.print_warning("There is no database to archive.")
        return

    ui.print_warning("The encrypted database will be moved aside and cannot be opened without its password.")
    if not ui.prompt_confirm("Start with a new database?", default=False):
        return

    result = asyncio.run(app.service.start_with_new_database(path))
    if not result.success:
        ui.print_error(result.error_message)
        return

    app.keychain.remove_key(app.settings.keychain_label)
    ui.print_success(f"Encrypted database archived to {result.archived_path}")
    ui.print_info("A fresh database will be created the next time the application starts.")
    ui.console.print()
    sys.exit(0)


def cmd_forget(app: App, args: list[str]) -> None:
    if app.keychain.remove_key(app.settings.keychain_label):
        ui.print_success("Stored password removed from the keychain.")
    else:
        ui.print_warning("No stored password was removed.")
