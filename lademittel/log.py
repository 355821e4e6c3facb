"""Logging setup shared by the CLI and batch runner."""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """
    Initialise the root logger once with a rich console handler.
    Pass ``force=True`` to reconfigure (tests, repeated CLI invocations).
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=force,
    )
