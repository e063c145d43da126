import logging
import sys
from typing import Optional


def setup_logger(
    name: Optional[str] = "twaforge", level: Optional[str] = None, verbose: bool = False
) -> logging.Logger:
    """Setup and configure the CLI logger."""
    _logger = logging.getLogger(name)

    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName((level or "INFO").upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    _logger.setLevel(log_level)

    if _logger.handlers:
        for handler in _logger.handlers:
            handler.setLevel(log_level)
        return _logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(formatter)
    _logger.addHandler(console_handler)
    _logger.propagate = False

    return _logger
