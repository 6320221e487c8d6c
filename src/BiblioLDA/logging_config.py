"""
Logging for the BiblioLDA pipeline.

Pipeline modules only ask for named loggers. The script or notebook driving a
run calls ``setup_logging`` once to decide where records go.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# gensim reports every LDA pass and coherence segment at INFO
NOISY_LOGGERS = ("gensim", "nltk", "polars", "smart_open")


def resolve_level(level: str | int) -> int:
    """Numeric logging level from a name such as "info" or a number."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid logging level: {level}")
    return resolved


def setup_logging(level: str | int = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Route pipeline logs to stdout and, optionally, a file.

    Existing root handlers are replaced so repeated calls from a notebook do
    not duplicate output. Third-party loggers in ``NOISY_LOGGERS`` are held
    at WARNING whatever ``level`` is.

    Args:
        level: Level name or number
        log_file: Optional file that receives the same records

    Returns:
        The configured root logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    log_level = resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for a pipeline module, usually ``get_logger(__name__)``."""
    return logging.getLogger(name)
