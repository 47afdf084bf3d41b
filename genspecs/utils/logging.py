from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger.

    The level comes from ``LOG_LEVEL`` when not passed explicitly. Later
    calls are no-ops.
    """
    global _configured
    if _configured:
        return

    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(resolved)

    # Third-party clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
