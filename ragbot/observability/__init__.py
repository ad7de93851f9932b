"""
Observability helpers: logging configuration and structured log utilities.
"""

from ragbot.observability.log_utils import (
    log_exception_with_context,
    log_with_context,
    safe_log_value,
)
from ragbot.observability.logger import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "log_exception_with_context",
    "log_with_context",
    "safe_log_value",
]
