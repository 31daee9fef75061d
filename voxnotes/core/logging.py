"""Logging configuration for the VoxNotes application."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Configure the ``voxnotes`` logger hierarchy once.

    Repeated calls only adjust the level, so tests and app factories can
    call this freely without stacking handlers.

    Args:
        level: A logging level name ("DEBUG", "INFO", ...) or number.

    Returns:
        The configured ``voxnotes`` root logger.
    """
    logger = logging.getLogger("voxnotes")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger
