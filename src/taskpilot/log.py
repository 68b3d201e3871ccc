"""Logging setup shared by the CLI and the web server."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO, *, rich: bool = True) -> None:
    """Install a single root handler; calling again only adjusts the level."""

    root = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level)
    if any(getattr(handler, "_taskpilot", False) for handler in root.handlers):
        return
    if rich:
        handler: logging.Handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s " + LOG_FORMAT))
    handler._taskpilot = True  # type: ignore[attr-defined]
    root.addHandler(handler)
