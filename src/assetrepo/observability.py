"""Logging setup for applications embedding the repository."""

from __future__ import annotations

import logging
import sys

from .config import LoggingConfig

PACKAGE_LOGGER = "assetrepo"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach a console handler to the package logger, or silence it.

    Repository logging is opt-in: unless ``config.enabled`` is set (by default
    from ``ENABLE_ASSET_REPOSITORY_LOGGING``) records are dropped.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_assetrepo_handler", False):
            logger.removeHandler(handler)

    if not config.enabled:
        logger.addHandler(_tagged(logging.NullHandler()))
        logger.setLevel(logging.CRITICAL + 1)
        logger.propagate = False
        return logger

    handler = _tagged(logging.StreamHandler(sys.stderr))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(config.level)
    logger.propagate = False
    logger.info("repository logging enabled level=%s", config.level)
    return logger


def _tagged(handler: logging.Handler) -> logging.Handler:
    handler._assetrepo_handler = True  # type: ignore[attr-defined]
    return handler
