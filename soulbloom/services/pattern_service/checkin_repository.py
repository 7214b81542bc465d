"""Check-in repositories for the Pattern Service.

The pattern detector only reads check-ins: the recent window for a user
and the single most recent record. Writes happen in the check-in flow,
which is outside this package; the in-memory store exposes `add` so
development and tests can seed it.
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from soulbloom.shared.database import BaseRepository, ConnectionManager
from soulbloom.shared.models import CheckinRecord, MoodRating


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CheckinRepository(ABC):
    """Read access to stored mood/stress check-ins."""

    @abstractmethod
    def list_since(self, user_id: str, since: datetime) -> List[CheckinRecord]:
        """Return a user's check-ins created at or after `since`, newest first.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    def latest(self, user_id: str) -> Optional[CheckinRecord]:
        """Return a user's most recent check-in, or None.

        Raises:
            StorageError: If the store cannot be read
        """
        pass


class InMemoryCheckinRepository(CheckinRepository):
    """Thread-safe in-memory check-in store for development and tests."""

    def __init__(self):
        self._records: Dict[str, List[CheckinRecord]] = {}
        self._lock = threading.Lock()

    def add(self, record: CheckinRecord) -> None:
        with self._lock:
            self._records.setdefault(record.user_id, []).append(record)

    def list_since(self, user_id: str, since: datetime) -> List[CheckinRecord]:
        since = as_utc(since)
        with self._lock:
            records = list(self._records.get(user_id, ()))
        matching = [r for r in records if as_utc(r.created_at) >= since]
        return sorted(matching, key=lambda r: as_utc(r.created_at), reverse=True)

    def latest(self, user_id: str) -> Optional[CheckinRecord]:
        with self._lock:
            records = list(self._records.get(user_id, ()))
        if not records:
            return None
        return max(records, key=lambda r: as_utc(r.created_at))


class PostgresCheckinRepository(BaseRepository[CheckinRecord], CheckinRepository):
    """Check-ins read from the `checkin_responses` table."""

    _COLUMNS = "user_id, mood_rating, stress_level, created_at, selected_emotions"

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "checkin_responses")

    def _row_to_entity(self, row: tuple) -> CheckinRecord:
        """Convert database row to CheckinRecord.

        Expected columns:
            0: user_id
            1: mood_rating
            2: stress_level
            3: created_at
            4: selected_emotions (text[] or NULL)
        """
        mood = MoodRating.parse(row[1])
        if mood is None:
            # Legacy rows with an unknown mood sit at the neutral midpoint
            mood = MoodRating.OKAY
        return CheckinRecord(
            user_id=str(row[0]),
            mood_rating=mood,
            stress_level=int(row[2]),
            created_at=as_utc(row[3]),
            selected_emotions=tuple(row[4] or ()),
        )

    def list_since(self, user_id: str, since: datetime) -> List[CheckinRecord]:
        return self._fetchall(
            f"""
            SELECT {self._COLUMNS} FROM {self.table_name}
            WHERE user_id = %s AND created_at >= %s
            ORDER BY created_at DESC
            """,
            (user_id, as_utc(since)),
        )

    def latest(self, user_id: str) -> Optional[CheckinRecord]:
        return self._fetchone(
            f"""
            SELECT {self._COLUMNS} FROM {self.table_name}
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (user_id,),
        )
