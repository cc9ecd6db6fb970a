"""
Logging configuration for flowtrace queries.

Configures a query log with timestamps, query kind, start segment, result size,
status and duration. Logs to stdout, and to a file when FLOWTRACE_LOG_FILE is set.
"""

import logging
import os
import sys
from pathlib import Path

from flowtrace.config.defaults import ENV_LOG_FILE

QUERY_LOGGER_NAME = "flowtrace.queries"


def setup_logging(stream=None) -> logging.Logger:
    """
    Configure the query logger.

    Args:
        stream: Stream for the console handler (default: stdout)

    Returns:
        Logger instance for query records.
    """
    logger = logging.getLogger(QUERY_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Remove any existing handlers
    logger.handlers.clear()

    # Log format: timestamp | message
    formatter = logging.Formatter("%(asctime)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Optional file logging
    log_file = os.getenv(ENV_LOG_FILE)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_query(
    logger: logging.Logger,
    query: str,
    segment_id: object,
    status: str,
    duration_seconds: float,
    result_size: int = 0,
    error_code: str | None = None,
) -> None:
    """
    Log a query with structured format.

    Log format:
        SUCCESS: upstream | 41000001 | SUCCESS | 0.02s | segments=7
        ERROR:   upstream | 99 | ERROR | 0.00s | NOT_FOUND
    """
    duration_str = f"{duration_seconds:.2f}s"

    if status == "SUCCESS":
        message = f"{query} | {segment_id} | SUCCESS | {duration_str} | segments={result_size}"
    else:
        message = f"{query} | {segment_id} | ERROR | {duration_str} | {error_code}"

    logger.info(message)
