"""Process-wide logging setup.

Every component logs through a ``logging.Logger`` named ``intake.<component>``.
Components accept an injected logger so tests (or a host application) can
route records elsewhere; by default they fall back to these module loggers.
"""
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging once and return the package logger."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logger = logging.getLogger("intake")
    logger.setLevel(numeric_level)
    return logger
