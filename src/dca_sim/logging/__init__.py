"""
Event logging module for the weekly DCA backtester.

Provides append-only event logging for audit and reproducibility.
"""

from dca_sim.logging.event_log import (
    EventLogger,
    get_logger,
)

__all__ = [
    "EventLogger",
    "get_logger",
]
