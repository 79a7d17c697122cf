"""Centralized logging configuration."""

import logging
import sys
from typing import IO, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(
    name: str,
    level: str = "INFO",
    fmt: str = DEFAULT_FORMAT,
    stream: Optional[IO[str]] = None,
    propagate: bool = True,
) -> logging.Logger:
    """Get a configured logger instance.
    
    A handler is attached only on first use of a name, so repeated
    calls never duplicate output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = propagate
    
    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
    
    return logger
