"""
Logging configuration for the CLI.

main.py calls ``setup_from_env`` once per process; module loggers
(``logging.getLogger(__name__)``) inherit from the root handlers set here.

Console level, highest precedence first:
    --debug  >  --verbose  >  --quiet  >  VPS_SETUP_LOG_LEVEL  >  WARNING

VPS_SETUP_LOG_FILE adds a file handler, at VPS_SETUP_LOG_FILE_LEVEL if
set, otherwise at the console level.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "VPS_SETUP_LOG_LEVEL"
LOG_FILE_ENV = "VPS_SETUP_LOG_FILE"
LOG_FILE_LEVEL_ENV = "VPS_SETUP_LOG_FILE_LEVEL"

# (highest level the format applies to, format, date format)
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(name)s: %(message)s", "%H:%M:%S"),
)
_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"


def resolve_level(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def console_formatter(level: int) -> logging.Formatter:
    """Timestamps and logger names at INFO and below; bare messages above."""
    for ceiling, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= ceiling:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter("%(message)s")


def setup_logging(level: str = "WARNING", log_file: str | None = None, log_file_level: str | None = None) -> None:
    """Replace the root handlers with a stderr handler and an optional file."""
    console_level = _parse_level(level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_formatter(console_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)


def setup_from_env(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Configure logging from CLI flags and VPS_SETUP_* env vars; returns the level."""
    level = resolve_level(debug=debug, verbose=verbose, quiet=quiet)
    setup_logging(
        level=level,
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )
    return level


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown names mean WARNING."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
