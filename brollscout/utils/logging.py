"""Logging setup for B-Roll Scout.

Package records go to a Rich console handler on stderr and, when asked,
to a plain-text log file. Both handlers carry a RedactingFilter, so an API
key echoed back in an SDK error message is masked before it is written.

Pipeline phases are timed with timed_phase():

    >>> with timed_phase("Analysis", logger) as phase:
    ...     phase.detail = "3 new files"
    # Logs: "Analysis: 3 new files (2.31s)"
"""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_NAME = "brollscout"

# Set to WARNING so request chatter from the Gemini SDK stays out of -v output
THIRD_PARTY_LOGGERS = ("google", "grpc", "urllib3", "httpx", "PIL")

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_console = Console(stderr=True)


# =============================================================================
# Redaction
# =============================================================================


class RedactingFilter(logging.Filter):
    """Logging filter that masks anything that looks like an API key.

    Example:
        >>> handler.addFilter(RedactingFilter())
        >>> logger.info("Using api_key=AIzaSy123456789...")
        # Output: "Using api_key=[REDACTED]"
    """

    KEY_VALUE_PATTERNS = [
        re.compile(r'(api_key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(token\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r"(bearer\s+)([a-zA-Z0-9_\-]{20,})", re.IGNORECASE),
    ]
    # Gemini keys start with AIza
    STANDALONE_PATTERNS = [
        re.compile(r"\bAIza[a-zA-Z0-9_\-]{30,}\b"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)

        if record.args:
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )

        return True

    def redact(self, text: str) -> str:
        for pattern in self.KEY_VALUE_PATTERNS:
            text = pattern.sub(r"\1[REDACTED]", text)
        for pattern in self.STANDALONE_PATTERNS:
            text = pattern.sub("[REDACTED]", text)
        return text


# =============================================================================
# Setup
# =============================================================================


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=level == logging.DEBUG,
        markup=False,
    )
    handler.setLevel(level)
    handler.addFilter(RedactingFilter())
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Configure the brollscout logger for a CLI invocation.

    The console shows INFO (DEBUG with verbose). A log file, when given,
    always receives DEBUG records. Calling this again replaces the handlers.

    Returns:
        The package logger.
    """
    console_level = logging.DEBUG if verbose else logging.INFO

    package_logger = logging.getLogger(PACKAGE_NAME)
    package_logger.handlers = [_console_handler(console_level)]
    package_logger.setLevel(console_level)

    if log_file:
        package_logger.addHandler(_file_handler(log_file))
        package_logger.setLevel(logging.DEBUG)

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.propagate = False
    return package_logger


# =============================================================================
# Phase Timing
# =============================================================================


@dataclass
class PhaseStats:
    """What a timed phase reports when it finishes.

    Attributes:
        name: Phase name used as the log prefix.
        detail: Summary set by the caller inside the block.
        elapsed: Seconds spent in the block (set on exit).
    """

    name: str
    detail: str = ""
    elapsed: float = 0.0


@contextmanager
def timed_phase(
    name: str,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Iterator[PhaseStats]:
    """Time a pipeline phase and log one summary line when it ends.

    A failing block is logged at ERROR and the exception propagates.
    """
    log = logger or logging.getLogger(PACKAGE_NAME)
    stats = PhaseStats(name)
    log.debug(f"{name} started")
    start = time.perf_counter()

    try:
        yield stats
    except Exception as e:
        stats.elapsed = time.perf_counter() - start
        log.error(f"{name} failed after {stats.elapsed:.2f}s: {e}")
        raise

    stats.elapsed = time.perf_counter() - start
    summary = f"{name}: {stats.detail}" if stats.detail else name
    log.log(level, f"{summary} ({stats.elapsed:.2f}s)")
