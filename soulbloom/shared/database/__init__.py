"""Database connection management for SoulBloom services.

Provides connection pooling, health checks, and repository base classes
for PostgreSQL.
"""

from .connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)
from .repository import (
    BaseRepository,
    RepositoryError,
    StorageError,
    NotFoundError,
    DuplicateError,
)

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "get_connection_manager",
    "BaseRepository",
    "RepositoryError",
    "StorageError",
    "NotFoundError",
    "DuplicateError",
]
