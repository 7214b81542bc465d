"""Append-only notification log.

Daily and per-type caps are derived from this log at decision time, so
counting and appending for one user must not interleave with another
send for the same user. `locked(user_id)` opens that scope: the gate
holds a per-user thread lock around it, and the PostgreSQL store also
takes a transaction-scoped advisory lock so separate processes serialize.

An admitted send is appended as `sent` before delivery so it counts
toward the caps even if recording the outcome later fails.
"""
import json
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2

from soulbloom.shared.database import BaseRepository, ConnectionManager
from soulbloom.shared.models import (
    NotificationLogEntry,
    NotificationStatus,
    NotificationType,
)


def new_entry_id() -> str:
    return f"ntf_{uuid.uuid4().hex[:16]}"


class NotificationLogRepository(ABC):
    """Log of notification decisions; entries are only ever appended or given an outcome."""

    @abstractmethod
    def append(self, entry: NotificationLogEntry) -> None:
        """Persist one log entry.

        Raises:
            StorageError: If the entry cannot be written
        """
        pass

    @abstractmethod
    def update_outcome(
        self,
        entry_id: str,
        status: NotificationStatus,
        delivery_results: Sequence[Dict[str, Any]] = (),
    ) -> None:
        """Record the delivery outcome on an entry appended before delivery.

        Raises:
            StorageError: If the entry cannot be updated
        """
        pass

    @abstractmethod
    def count_sent_since(
        self,
        user_id: str,
        since: datetime,
        notification_type: Optional[NotificationType] = None,
    ) -> int:
        """Count `sent` entries for a user after `since`, optionally for one type.

        Raises:
            StorageError: If the log cannot be read
        """
        pass

    @abstractmethod
    def history(self, user_id: str, limit: int = 50) -> List[NotificationLogEntry]:
        """Most recent entries for a user, newest first."""
        pass

    @contextmanager
    def locked(self, user_id: str) -> Iterator["NotificationLogRepository"]:
        """Scope in which counts and appends for `user_id` are serialized.

        Within one process the gate's per-user lock already provides this.
        """
        yield self


class InMemoryNotificationLogRepository(NotificationLogRepository):
    """List-backed log guarded by a lock."""

    def __init__(self):
        self._entries: List[NotificationLogEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: NotificationLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def update_outcome(
        self,
        entry_id: str,
        status: NotificationStatus,
        delivery_results: Sequence[Dict[str, Any]] = (),
    ) -> None:
        with self._lock:
            for i, entry in enumerate(self._entries):
                if entry.entry_id == entry_id:
                    self._entries[i] = replace(
                        entry, status=status, delivery_results=tuple(delivery_results)
                    )
                    return

    def count_sent_since(
        self,
        user_id: str,
        since: datetime,
        notification_type: Optional[NotificationType] = None,
    ) -> int:
        with self._lock:
            return sum(
                1 for e in self._entries
                if e.user_id == user_id
                and e.status is NotificationStatus.SENT
                and e.sent_at > since
                and (notification_type is None or e.notification_type is notification_type)
            )

    def history(self, user_id: str, limit: int = 50) -> List[NotificationLogEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.user_id == user_id]
        entries.sort(key=lambda e: e.sent_at, reverse=True)
        return entries[:limit]

    def entries(self) -> List[NotificationLogEntry]:
        """Snapshot of every entry in append order."""
        with self._lock:
            return list(self._entries)


class PostgresNotificationLogRepository(BaseRepository[NotificationLogEntry], NotificationLogRepository):
    """Log stored in the `notification_log` table."""

    _COLUMNS = "id, user_id, notification_type, title, body, status, reason, data, delivery_results, sent_at"

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "notification_log")

    def _row_to_entity(self, row: tuple) -> NotificationLogEntry:
        """Convert database row to NotificationLogEntry.

        Expected columns match `_COLUMNS`; data and delivery_results are jsonb.
        """
        data = row[7] or {}
        results = row[8] or []
        if isinstance(data, str):
            data = json.loads(data)
        if isinstance(results, str):
            results = json.loads(results)
        sent_at = row[9]
        if sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=timezone.utc)
        return NotificationLogEntry(
            entry_id=str(row[0]),
            user_id=str(row[1]),
            notification_type=NotificationType(row[2]),
            title=row[3],
            body=row[4],
            status=NotificationStatus(row[5]),
            reason=row[6],
            data=data,
            delivery_results=tuple(results),
            sent_at=sent_at,
        )

    def append(self, entry: NotificationLogEntry) -> None:
        try:
            with self.connection_manager.transaction() as cur:
                self._insert(cur, entry)
        except psycopg2.Error as e:
            raise self._storage_error("INSERT", e)

    def update_outcome(
        self,
        entry_id: str,
        status: NotificationStatus,
        delivery_results: Sequence[Dict[str, Any]] = (),
    ) -> None:
        try:
            with self.connection_manager.transaction() as cur:
                self._update(cur, entry_id, status, delivery_results)
        except psycopg2.Error as e:
            raise self._storage_error("UPDATE", e)

    def count_sent_since(
        self,
        user_id: str,
        since: datetime,
        notification_type: Optional[NotificationType] = None,
    ) -> int:
        query, params = self._count_query(user_id, since, notification_type)
        return int(self._fetch_scalar(query, params) or 0)

    def history(self, user_id: str, limit: int = 50) -> List[NotificationLogEntry]:
        return self._fetchall(
            f"""
            SELECT {self._COLUMNS} FROM {self.table_name}
            WHERE user_id = %s
            ORDER BY sent_at DESC
            LIMIT %s
            """,
            (user_id, limit),
        )

    @contextmanager
    def locked(self, user_id: str) -> Iterator[NotificationLogRepository]:
        """One transaction holding `pg_advisory_xact_lock` for the user.

        Counts and appends made through the yielded log share the
        transaction, so the lock is held until the final entry commits.
        """
        try:
            with self.connection_manager.transaction() as cur:
                cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (user_id,))
                yield _TransactionLog(self, cur)
        except psycopg2.Error as e:
            raise self._storage_error("LOCKED_SCOPE", e)

    def _count_query(self, user_id, since, notification_type):
        query = (
            f"SELECT COUNT(*) FROM {self.table_name} "
            "WHERE user_id = %s AND status = 'sent' AND sent_at > %s"
        )
        params: List[Any] = [user_id, since]
        if notification_type is not None:
            query += " AND notification_type = %s"
            params.append(notification_type.value)
        return query, params

    def _insert(self, cur, entry: NotificationLogEntry) -> None:
        cur.execute(
            f"""
            INSERT INTO {self.table_name}
                (id, user_id, notification_type, title, body, status, reason,
                 data, delivery_results, sent_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s::jsonb, %s)
            """,
            (
                entry.entry_id,
                entry.user_id,
                entry.notification_type.value,
                entry.title,
                entry.body,
                entry.status.value,
                entry.reason,
                json.dumps(entry.data),
                json.dumps(list(entry.delivery_results)),
                entry.sent_at,
            ),
        )

    def _update(self, cur, entry_id, status, delivery_results) -> None:
        cur.execute(
            f"UPDATE {self.table_name} SET status = %s, delivery_results = %s::jsonb WHERE id = %s",
            (status.value, json.dumps(list(delivery_results)), entry_id),
        )


class _TransactionLog(NotificationLogRepository):
    """Log view bound to an open transaction cursor."""

    def __init__(self, repository: PostgresNotificationLogRepository, cursor):
        self._repository = repository
        self._cursor = cursor

    def append(self, entry: NotificationLogEntry) -> None:
        try:
            self._repository._insert(self._cursor, entry)
        except psycopg2.Error as e:
            raise self._repository._storage_error("INSERT", e)

    def update_outcome(
        self,
        entry_id: str,
        status: NotificationStatus,
        delivery_results: Sequence[Dict[str, Any]] = (),
    ) -> None:
        try:
            self._repository._update(self._cursor, entry_id, status, delivery_results)
        except psycopg2.Error as e:
            raise self._repository._storage_error("UPDATE", e)

    def count_sent_since(
        self,
        user_id: str,
        since: datetime,
        notification_type: Optional[NotificationType] = None,
    ) -> int:
        query, params = self._repository._count_query(user_id, since, notification_type)
        try:
            self._cursor.execute(query, params)
            row = self._cursor.fetchone()
        except psycopg2.Error as e:
            raise self._repository._storage_error("SELECT", e)
        return int(row[0]) if row else 0

    def history(self, user_id: str, limit: int = 50) -> List[NotificationLogEntry]:
        return self._repository.history(user_id, limit)
