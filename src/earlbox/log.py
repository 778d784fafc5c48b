"""Logging setup shared by the CLI and the web app."""

import logging

from rich.logging import RichHandler

_FORMAT = "%(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a rich handler on the root logger.

    Safe to call more than once; only the level changes on later calls.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
