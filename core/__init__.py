"""
Core utilities and configuration for the Stack Overflow crawler.

This package provides foundational components used throughout the crawler:

Modules:
    config: Settings loaded from environment variables and .env
    database: Async engine, connection pool and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import build_engine
    from core.exceptions import RequestFailed, PersistenceError
    from core.logging import setup_logging

Example:
    setup_logging(settings)
    engine = build_engine(settings)
"""

__all__ = [
    "config",
    "database",
    "exceptions",
    "logging",
]
