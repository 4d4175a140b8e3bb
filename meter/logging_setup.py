"""Centralized logging configuration."""
from __future__ import annotations

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: Union[str, int] = "WARNING", console: Optional[Console] = None) -> None:
    """
    Route every logger through a single ``RichHandler`` on the root logger.

    Records go to stderr unless *console* says otherwise; stdout is kept
    for results such as ``--json`` output.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="%H:%M:%S",
    )
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    root_logger.addHandler(handler)
