"""Rich-based terminal rendering for db-unlock."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from db_unlock import __version__
from db_unlock.commands.registry import Command
from db_unlock.models import DatabaseStatus, UnlockState

THEME = Theme(
    {
        "header": "bold cyan",
        "path": "bold blue",
        "success": "bold green",
        "error": "bold red",
        "warn": "bold yellow",
        "info": "bold cyan",
        "muted": "dim",
    }
)

console = Console(theme=THEME)


def print_banner() -> None:
    banner = Text()
    banner.append("  db-unlock", style="bold cyan")
    banner.append(f" v{__version__}", style="dim")
    banner.append("  ·  ", style="dim")
    banner.append("Encrypted database unlock", style="dim italic")
    console.print()
    console.print(Panel(banner, border_style="cyan", padding=(0, 1)))
    console.print()


_STATUS_LABELS = {
    DatabaseStatus.MISSING: "[muted]Not created yet[/muted]",
    DatabaseStatus.PLAINTEXT: "[warn]Not encrypted[/warn]",
    DatabaseStatus.ENCRYPTED: "[success]Encrypted[/success]",
    DatabaseStatus.UNREADABLE: "[error]Unreadable[/error]",
}


def print_status(state: UnlockState, keychain_available: bool) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold", width=10, justify="right")
    table.add_column()

    table.add_row("Database", f"[path]{state.database_path}[/path]")
    table.add_row("Status", _STATUS_LABELS[state.status])
    table.add_row("Lock", "[error]Locked[/error]" if state.needs_unlock else "[success]Unlocked[/success]")
    table.add_row("Keychain", "Available" if keychain_available else "[warn]Unavailable[/warn]")

    console.print(Panel(table, title="[bold]Database[/bold]", title_align="left", border_style="cyan"))
    console.print()


def print_help(commands: list[Command]) -> None:
    help_table = Table(show_header=False, box=None, padding=(0, 2))
    help_table.add_column(style="bold cyan", min_width=12)
    help_table.add_column(style="dim")

    for cmd in commands:
        help_table.add_row(f"/{cmd.name}", cmd.description)

    console.print(Panel(help_table, title="[bold]Commands[/bold]", title_align="left", border_style="cyan"))
    console.print("  [muted]Anything else you type is tried as the password.[/muted]")
    console.print()


def print_success(message: str) -> None:
    console.print(f"  [success]✓[/success] {message}")


def print_error(message: str) -> None:
    console.print(f"  [error]✗[/error] {message}")


def print_warning(message: str) -> None:
    console.print(f"  [warn]![/warn] {message}")


def print_info(message: str) -> None:
    console.print(f"  [info]ℹ[/info] {message}")


def prompt_input(label: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    try:
        value = console.input(f"  [bold]{label}[/bold]{suffix}: ")
        return value.strip() or default
    except (EOFError, KeyboardInterrupt):
        return default


def prompt_confirm(label: str, default: bool = True) -> bool:
    hint = "Y/n" if default else "y/N"
    try:
        value = console.input(f"  [bold]{label}[/bold] [{hint}]: ").strip().lower()
        if not value:
            return default
        return value in ("y", "yes")
    except (EOFError, KeyboardInterrupt):
        return default
