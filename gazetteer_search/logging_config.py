"""
Logging setup for the CLI and embedding applications.
JSON lines in production; a compact stderr format otherwise, so stdout stays
free for search results.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import json_log_formatter

from gazetteer_search.config import get_settings

CONSOLE_FORMAT = "%(levelname).1s %(name)s: %(message)s"


class GazetteerJSONFormatter(json_log_formatter.JSONFormatter):
    """Adds level, logger name and dataset path to each JSON record."""

    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        payload = super().json_record(message, extra, record)
        payload["level"] = record.levelname
        payload["logger"] = record.name
        path = getattr(record, "dataset_path", None)
        if path is not None:
            payload["dataset_path"] = path
        return payload


def setup_logging(verbose: bool = False, level: Optional[str] = None) -> None:
    """Configure the root logger from settings; ``verbose`` forces DEBUG."""
    settings = get_settings()
    name = "DEBUG" if verbose else (level or settings.log_level)
    resolved = getattr(logging, name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if settings.env == "production":
        handler.setFormatter(GazetteerJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers = [handler]

    # Per-request lines from the HTTP stack drown out loader progress
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(resolved, logging.WARNING))
