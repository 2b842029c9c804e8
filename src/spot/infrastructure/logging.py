"""
infrastructure.logging - Root logger setup for the CLI.

Modules only ever call logging.getLogger(__name__); handlers are installed
once here. Log records go through rich so they render cleanly next to the
streamed answer on the same console.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Chatty third-party loggers that would otherwise flood DEBUG output.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure_logging(level: str = "WARNING", console: Optional[Console] = None) -> None:
    """Install a RichHandler on the root logger at *level*."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))
