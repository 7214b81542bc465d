"""Notification preference storage.

Preferences are a JSON document on the user row. A user who never saved
preferences has no document; callers apply the defaults.
"""
import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from soulbloom.shared.database import BaseRepository, ConnectionManager
from soulbloom.shared.models import NotificationPreferences


class PreferencesRepository(ABC):
    """Read/write access to per-user notification preferences."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[NotificationPreferences]:
        """Return stored preferences, or None when the user has none.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    def save(self, user_id: str, preferences: NotificationPreferences) -> None:
        """Replace a user's stored preferences.

        Raises:
            StorageError: If the store cannot be written
        """
        pass


class InMemoryPreferencesRepository(PreferencesRepository):

    def __init__(self):
        self._preferences: Dict[str, NotificationPreferences] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[NotificationPreferences]:
        with self._lock:
            return self._preferences.get(user_id)

    def save(self, user_id: str, preferences: NotificationPreferences) -> None:
        with self._lock:
            self._preferences[user_id] = preferences


class PostgresPreferencesRepository(BaseRepository[NotificationPreferences], PreferencesRepository):
    """Preferences stored in `users.notification_preferences` (jsonb)."""

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "users")

    def _row_to_entity(self, row: tuple) -> NotificationPreferences:
        document = row[0]
        if isinstance(document, str):
            document = json.loads(document)
        return NotificationPreferences.from_dict(document)

    def get(self, user_id: str) -> Optional[NotificationPreferences]:
        document = self._fetch_scalar(
            f"SELECT notification_preferences FROM {self.table_name} WHERE id = %s",
            (user_id,),
        )
        if document is None:
            return None
        return self._row_to_entity((document,))

    def save(self, user_id: str, preferences: NotificationPreferences) -> None:
        self._execute(
            f"UPDATE {self.table_name} SET notification_preferences = %s::jsonb WHERE id = %s",
            (json.dumps(preferences.to_dict()), user_id),
        )
