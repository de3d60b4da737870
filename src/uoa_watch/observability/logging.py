from __future__ import annotations

import logging
from typing import Sequence

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", *, extra_handlers: Sequence[logging.Handler] | None = None) -> None:
    """Configure root logging with a consistent format.

    Additional handlers (a run log file, for instance) can be supplied via ``extra_handlers``.
    Quiet httpx request logging below WARNING unless running at DEBUG.
    """

    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=DEFAULT_FORMAT)
    logging.getLogger().setLevel(resolved)
    if resolved > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    if extra_handlers:
        root = logging.getLogger()
        for handler in extra_handlers:
            handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            root.addHandler(handler)


__all__ = ["configure_logging"]
