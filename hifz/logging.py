"""
Logging utilities for the progression engine.
"""
import logging

# Configure package logger
logger = logging.getLogger('hifz')

# Add handler if not already configured
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def configure_logging(level: str) -> None:
    """Apply the configured level to the package logger."""
    logger.setLevel(level.upper())


def get_logger(name: str) -> logging.Logger:
    """Child logger under the ``hifz`` namespace, e.g. ``hifz.tasks``."""
    return logger.getChild(name)
