"""Logging setup for the site. Call setup_logging() at startup; repeat calls only adjust levels."""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "site_logging"


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    resolved = getattr(logging, str(level or "INFO").upper(), logging.INFO)
    root.setLevel(resolved)

    # Keep client libraries quiet unless something goes wrong.
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    # Streamlit reruns the script on every interaction; only add a handler once.
    for existing in root.handlers:
        if existing.get_name() == _HANDLER_NAME:
            existing.setLevel(resolved)
            return
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)
