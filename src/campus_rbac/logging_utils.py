"""Logging helpers for the campus access-control core."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from campus_rbac.auth.context import get_auth_context_optional
from campus_rbac.config import load_settings

_logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(subject_id)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class AuthContextFilter(logging.Filter):
    """Stamp records with the bound caller, or ``-`` outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_auth_context_optional()
        record.subject_id = ctx.subject_id if ctx is not None else "-"
        record.request_id = ctx.request_id if ctx is not None else "-"
        return True


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def configure_logging() -> None:
    """Install stderr (and optional file) handlers on the root logger."""
    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(_formatter())
    stream_handler.addFilter(AuthContextFilter())
    handlers.append(stream_handler)

    log_file_error: OSError | None = None
    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(_formatter())
            file_handler.addFilter(AuthContextFilter())
            handlers.append(file_handler)
        except OSError as exc:
            log_file_error = exc

    logging.basicConfig(level=level, handlers=handlers, force=True)
    if log_file_error is not None:
        _logger.warning("Failed to open log file %s: %s", settings.logging.file, log_file_error)
