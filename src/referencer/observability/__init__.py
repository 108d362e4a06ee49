"""Observability - Metrics and logging."""

from .logger import LogContext, add_context, clear_all_context, configure_logging
from .metrics import LoggerBackend, MetricsCollector

__all__ = [
    "MetricsCollector",
    "LoggerBackend",
    "configure_logging",
    "add_context",
    "clear_all_context",
    "LogContext",
]
