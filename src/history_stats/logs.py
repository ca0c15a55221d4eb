from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Diagnostics go to stderr; stdout carries command output.
console = Console(stderr=True)


def setup_logging(level: str = "WARNING") -> None:
    """Route all library loggers through one rich handler. Call once from the CLI."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers.clear()

    rich_handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(rich_handler)
