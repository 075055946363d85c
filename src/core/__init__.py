"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Common numeric utilities
"""

from core.logging import configure_logging, get_logger
from core.utils import clamp, clamp01, deterministic_index

__all__ = [
    "configure_logging",
    "get_logger",
    "clamp",
    "clamp01",
    "deterministic_index",
]
