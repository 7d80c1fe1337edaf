"""
Logging redaction helpers.
Strips FX API keys and bearer tokens from log messages.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


_PATTERNS: Iterable[tuple[re.Pattern, str]] = (
    # ExchangeRate-API keyed endpoint: /v6/<key>/pair/...
    (re.compile(r"(/v6/)([A-Za-z0-9]{8,})(/)"), r"\1[REDACTED]\3"),
    # Authorization: Bearer <token>
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-\._]+)"), r"\1[REDACTED]"),
    # FX_API_KEY=..., api_key: ... in config dumps
    (re.compile(r"(?i)(fx_api_key|api[_-]?key|secret)\s*[:=]\s*([A-Za-z0-9\-\._]+)"), r"\1=[REDACTED]"),
)


def redact_message(message: str) -> str:
    redacted = message
    for pattern, replacement in _PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class RedactingFilter(logging.Filter):
    """Rewrites the rendered message of every record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed %-args; let logging report it unchanged
            return True
        record.msg = redact_message(message)
        record.args = ()
        return True


def install_redaction_filter() -> None:
    root = logging.getLogger()
    if any(isinstance(existing, RedactingFilter) for existing in root.filters):
        return
    redactor = RedactingFilter()
    root.addFilter(redactor)
    # root-logger filters do not run for records propagated from child loggers
    for handler in root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redactor)
