"""
Utilities package for rowbinder.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of record-mapping logic.
"""

from rowbinder.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
