"""Logging helpers for the Omnia API server."""

import logging
from typing import Optional

from .config import get_settings


def setup_logging(level_name: Optional[str] = None) -> None:
    level_name = (level_name or get_settings().log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    # Suppress verbose request logs from the HTTP and LLM clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


__all__ = ["setup_logging"]
