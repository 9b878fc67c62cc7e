"""Cross-cutting utilities for the reel service.

This package contains helper functions used across multiple modules.
Utilities should be pure functions without business logic.

Modules:
    logging: structlog configuration and logger factory.
    filesystem: Safe path construction for results and transient media.
"""

from app.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
