"""Logging setup for db-unlock.

Call ``setup_logging()`` once from the entry point. Log records go to stderr
through rich so they don't interleave badly with the prompt on stdout.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger.

    Accepts both integer constants (``logging.DEBUG``) and level names
    (``"debug"``). Unknown names fall back to ``INFO``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )

    # keyring backends log their probing at INFO
    logging.getLogger("keyring").setLevel(logging.WARNING)
