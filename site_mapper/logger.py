# === FILE: site_mapper/logger.py ===
"""Project-wide logging setup for **SiteMapper**.

Highlights
----------
* One named logger shared by the crawler, the sitemap writer and the CLI::

      from site_mapper.logger import logger
      logger.info("Crawl started")
* Console output always, a rotating log file on request.
* Re-configurable at runtime via :func:`configure` (the CLI does this once
  it has parsed ``--log-level`` / ``--log-file`` / ``--log-format``).
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Union

# --------------------------------------------------------------------------- #
# Constants & basic types                                                     #
# --------------------------------------------------------------------------- #

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteMapper"

_LevelT = Union[int, str]


# --------------------------------------------------------------------------- #
# Helper builders                                                             #
# --------------------------------------------------------------------------- #


def _stdout_handler(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _file_handler(file: Path | str, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(file),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the project logger.

    Parameters
    ----------
    level
        Numeric or textual logging level (e.g. ``"DEBUG"``).
    log_file
        Path to a logfile. *None* means console-only output.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        *True* drops existing handlers first; *False* appends.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        for handler in list(lg.handlers):
            handler.close()
        lg.handlers.clear()

    lg.addHandler(_stdout_handler(log_format))

    if log_file is not None:
        lg.addHandler(_file_handler(log_file, log_format))

    lg.propagate = False
    return lg


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Shorthand used by the CLI: replace handlers and apply the options."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


# --------------------------------------------------------------------------- #
# Ready-to-use instance                                                       #
# --------------------------------------------------------------------------- #

logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
