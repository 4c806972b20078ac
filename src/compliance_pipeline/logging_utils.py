"""Process-wide logging for the compliance pipeline service.

Every handler masks credentials in the rendered message, so a token that
slips into an exception text or a log argument never reaches disk.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from compliance_pipeline.config import LoggingSettings, load_settings
from compliance_pipeline.utils.masking import mask_sensitive_text

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# AccessLogMiddleware already writes one line per request; identity lookups
# through httpx would otherwise log the provider URL at INFO.
QUIET_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class SensitiveDataFilter(logging.Filter):
    """Mask bearer tokens and ``secret=...`` style pairs in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Handler.emit reports the formatting error itself.
            return True
        masked = mask_sensitive_text(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _build_handlers(settings: LoggingSettings) -> list[logging.Handler]:
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    redactor = SensitiveDataFilter()

    stream_handler = logging.StreamHandler(sys.stderr)
    handlers: list[logging.Handler] = [stream_handler]

    if settings.file:
        try:
            Path(settings.file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(settings.file))
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.file, exc)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
    return handlers


def configure_logging() -> None:
    """Configure root logging from settings and quiet chatty libraries."""
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    logging.basicConfig(level=level, handlers=_build_handlers(settings.logging), force=True)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
