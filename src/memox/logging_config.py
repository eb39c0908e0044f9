"""Logging setup shared by the library, the CLI and the tools.

Library modules only call ``get_logger``; handlers are attached once by
``setup_logging`` from the CLI (or by an embedding application).
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "memox"

_configured = False


def _parse_level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    force: bool = False,
) -> None:
    """Attach handlers to the ``memox`` logger.

    MEMOX_LOG_LEVEL and MEMOX_LOG_FILE take precedence over the arguments.
    Later calls are ignored unless ``force`` is set.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Also append records to this file (UTF-8)
        force: Replace handlers from an earlier call
    """
    global _configured
    if _configured and not force:
        return

    log_level = _parse_level(os.getenv("MEMOX_LOG_LEVEL"), _parse_level(level, logging.INFO))
    log_file = os.getenv("MEMOX_LOG_FILE", log_file)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    _attach(package_logger, logging.StreamHandler(), log_level)

    if log_file:
        try:
            _attach(package_logger, logging.FileHandler(log_file, encoding="utf-8"), log_level)
        except OSError:
            package_logger.warning("Could not open log file %s, logging to stderr only", log_file)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``memox`` namespace.

    Names already under ``memox`` are used as is, anything else is prefixed.
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
