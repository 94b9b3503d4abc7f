"""Configuration module for the service.

This module provides:
- PostgreSQL async engine management
"""

from .postgres import (
    dispose_engine,
    get_db_connection,
    get_engine,
    init_engine,
    ping_database,
)

__all__ = [
    "dispose_engine",
    "get_db_connection",
    "get_engine",
    "init_engine",
    "ping_database",
]
