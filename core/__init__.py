"""
Core utilities and configuration for the Growi sync backend.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import GrowiApiError, PersistenceError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with async_session_maker() as session:
        ...
"""

from core.config import settings
from core.database import get_session
from core.logging import setup_logging
from core.exceptions import (
    SyncException,
    ConfigurationError,
    ExtractionError,
    GrowiApiError,
    TransportError,
    UpstreamStatusError,
    UpstreamShapeError,
    RetriesExhaustedError,
    LoadError,
    PersistenceError,
    RetryableError,
    NonRetryableError,
)

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    # Exceptions
    "SyncException",
    "ConfigurationError",
    "ExtractionError",
    "GrowiApiError",
    "TransportError",
    "UpstreamStatusError",
    "UpstreamShapeError",
    "RetriesExhaustedError",
    "LoadError",
    "PersistenceError",
    "RetryableError",
    "NonRetryableError",
]
