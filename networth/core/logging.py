"""
Central logging setup for the API process and scripts.
"""

import logging
import sys
from typing import Iterable

from networth.utils.logging_redaction import install_redaction_filter

# Third-party loggers that flood INFO with per-request lines
_NOISY_LOGGERS: Iterable[str] = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def setup_logging(level: str = "INFO", redact: bool = True) -> None:
    """
    Configure stdout logging once per process.

    FX API keys travel inside request URLs, so the redaction filter is on
    unless a caller explicitly opts out.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if redact:
        install_redaction_filter()
