"""Centralized logging helpers.

Provides one-shot configuration of the root logger plus small helpers used
across the pipeline for structured DEBUG traces: ``extra_context`` builds the
``extra=`` payload, ``safe_url``/``redact`` keep credentials out of log lines,
and ``Timer`` measures durations.
"""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_CONFIGURED = False
_SECRET_PATTERN = re.compile(r"(?i)(password|token|secret|auth)=([^&\s]+)")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once.

    The level comes from ``level`` when given, otherwise from the
    ``GEMNIX_LOG_LEVEL`` environment variable, defaulting to INFO.
    """
    global _CONFIGURED  # pylint: disable=global-statement
    level_name = (level or os.environ.get(Constants.LOG_LEVEL_ENV) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not _CONFIGURED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
        _CONFIGURED = True
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records of ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra=`` mapping for structured log records.

    None values are dropped so records only carry what is known.
    """
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: str) -> str:
    """Strip userinfo and redact secret-looking query values from a URL."""
    if not url:
        return url
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if not parts.scheme:
        return redact(url)
    return urlunsplit((parts.scheme, netloc, parts.path, redact(parts.query), ""))


def redact(text: str) -> str:
    """Mask ``key=value`` pairs whose key looks like a credential."""
    if not text:
        return text
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}=***", text)


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, up to now while still inside the block."""
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)
