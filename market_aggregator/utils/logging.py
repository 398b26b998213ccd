from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName((level or "INFO").upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    # Re-running (tests, loop restarts) must not stack handlers.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(resolved)

    # Retry/HTTP chatter from dependencies is noise at INFO.
    logging.getLogger("urllib3").setLevel(max(resolved, logging.WARNING))
    logging.getLogger("pymongo").setLevel(max(resolved, logging.WARNING))
