"""Tests for base repository pattern."""
import pytest
from contextlib import contextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

import psycopg2

from soulbloom.shared.database.repository import (
    BaseRepository,
    RepositoryError,
    StorageError,
    NotFoundError,
    DuplicateError,
)


@dataclass
class SampleEntity:
    """Entity for repository tests."""
    id: str
    name: str


class SampleRepository(BaseRepository[SampleEntity]):
    """Concrete repository for testing."""

    def _row_to_entity(self, row: tuple) -> SampleEntity:
        return SampleEntity(id=row[0], name=row[1])

    def find(self, entity_id: str):
        return self._fetchone("SELECT id, name FROM sample WHERE id = %s", (entity_id,))

    def find_all(self):
        return self._fetchall("SELECT id, name FROM sample")

    def count(self):
        return self._fetch_scalar("SELECT COUNT(*) FROM sample")

    def rename(self, entity_id: str, name: str):
        return self._execute("UPDATE sample SET name = %s WHERE id = %s", (name, entity_id))


def make_connection_manager(cursor):
    """Build a connection manager double around a cursor double."""
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    manager = MagicMock()

    @contextmanager
    def get_connection():
        yield conn

    @contextmanager
    def transaction():
        yield cursor

    manager.get_connection.side_effect = get_connection
    manager.transaction.side_effect = transaction
    return manager


class TestRepositoryExceptions:
    """Tests for repository exception classes."""

    def test_storage_error_is_repository_error(self):
        assert isinstance(StorageError("x"), RepositoryError)

    def test_not_found_error(self):
        assert isinstance(NotFoundError("Entity not found"), RepositoryError)

    def test_duplicate_error(self):
        assert isinstance(DuplicateError("Duplicate entity"), RepositoryError)


class TestBaseRepository:
    """Tests for BaseRepository helpers."""

    def test_fetchone_maps_row(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = ("id_1", "first")
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        assert repo.find("id_1") == SampleEntity(id="id_1", name="first")

    def test_fetchone_returns_none_when_missing(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = None
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        assert repo.find("missing") is None

    def test_fetchall_maps_rows(self):
        cursor = MagicMock()
        cursor.fetchall.return_value = [("a", "A"), ("b", "B")]
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        assert [e.id for e in repo.find_all()] == ["a", "b"]

    def test_fetch_scalar(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = (7,)
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        assert repo.count() == 7

    def test_execute_returns_rowcount(self):
        cursor = MagicMock()
        cursor.rowcount = 1
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        assert repo.rename("a", "renamed") == 1

    def test_driver_error_becomes_storage_error(self):
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.OperationalError("server closed")
        repo = SampleRepository(make_connection_manager(cursor), "sample")

        with pytest.raises(StorageError):
            repo.find_all()

        with pytest.raises(StorageError):
            repo.rename("a", "b")
