"""Base repository pattern for PostgreSQL-backed stores.

Every driver error is translated into StorageError so callers can isolate
a failing user or rule without knowing about psycopg2.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Sequence, TypeVar

import psycopg2

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class StorageError(RepositoryError):
    """Underlying store could not be read or written."""
    pass


class NotFoundError(RepositoryError):
    """Entity not found in database."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository with common query helpers.

    Subclasses implement entity-specific SQL while inheriting:
    - Connection management
    - Driver error translation
    - Logging patterns
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        """Initialize repository.

        Args:
            connection_manager: Database connection manager
            table_name: Name of the database table
        """
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert database row to entity."""
        pass

    def _fetchall(self, query: str, params: Sequence[Any] = ()) -> List[T]:
        """Run a SELECT and map every row to an entity."""
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise self._storage_error("SELECT", e)
        return [self._row_to_entity(row) for row in rows]

    def _fetchone(self, query: str, params: Sequence[Any] = ()) -> Optional[T]:
        """Run a SELECT and map the first row, or None."""
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise self._storage_error("SELECT", e)
        return self._row_to_entity(row) if row is not None else None

    def _fetch_scalar(self, query: str, params: Sequence[Any] = ()) -> Any:
        """Run a query returning a single value (counts, aggregates)."""
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise self._storage_error("SELECT", e)
        return row[0] if row else None

    def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement in its own transaction.

        Returns:
            Number of affected rows
        """
        try:
            with self.connection_manager.transaction() as cur:
                cur.execute(query, params)
                return cur.rowcount
        except psycopg2.Error as e:
            raise self._storage_error("WRITE", e)

    def _storage_error(self, operation: str, error: Exception) -> StorageError:
        logger.error(
            "REPOSITORY_OPERATION_FAILED",
            extra={
                "table_name": self.table_name,
                "operation": operation,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )
        return StorageError(f"{operation} on {self.table_name} failed: {error}")
