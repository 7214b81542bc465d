"""Device registration storage.

Registrations are never deleted: unregistering or a stale token marks the
row inactive, and registering the same token again reactivates it.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Tuple

import psycopg2

from soulbloom.shared.database import BaseRepository, ConnectionManager
from soulbloom.shared.models import DevicePlatform, DeviceRegistration


class DeviceRepository(ABC):
    """Read/deactivate access to push device registrations."""

    @abstractmethod
    def register(self, user_id: str, token: str, platform: DevicePlatform) -> DeviceRegistration:
        """Insert or reactivate a device token for a user."""
        pass

    @abstractmethod
    def deactivate(self, user_id: str, token: str) -> bool:
        """Mark a token inactive. Returns True if a registration changed."""
        pass

    @abstractmethod
    def active_devices(self, user_id: str) -> List[DeviceRegistration]:
        pass

    @abstractmethod
    def active_user_ids(self) -> List[str]:
        """Distinct users that have at least one active device."""
        pass


class InMemoryDeviceRepository(DeviceRepository):

    def __init__(self):
        self._devices: Dict[Tuple[str, str], DeviceRegistration] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, token: str, platform: DevicePlatform) -> DeviceRegistration:
        registration = DeviceRegistration(user_id=user_id, token=token, platform=platform)
        with self._lock:
            self._devices[(user_id, token)] = registration
        return registration

    def deactivate(self, user_id: str, token: str) -> bool:
        with self._lock:
            current = self._devices.get((user_id, token))
            if current is None or not current.is_active:
                return False
            self._devices[(user_id, token)] = replace(current, is_active=False)
            return True

    def active_devices(self, user_id: str) -> List[DeviceRegistration]:
        with self._lock:
            return [
                d for (uid, _), d in self._devices.items()
                if uid == user_id and d.is_active
            ]

    def active_user_ids(self) -> List[str]:
        with self._lock:
            return sorted({uid for (uid, _), d in self._devices.items() if d.is_active})


class PostgresDeviceRepository(BaseRepository[DeviceRegistration], DeviceRepository):
    """Registrations stored in `user_device_tokens`, unique on (user_id, token)."""

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "user_device_tokens")

    def _row_to_entity(self, row: tuple) -> DeviceRegistration:
        """Convert database row to DeviceRegistration.

        Expected columns:
            0: user_id
            1: token
            2: platform
            3: is_active
            4: last_used_at
        """
        return DeviceRegistration(
            user_id=str(row[0]),
            token=row[1],
            platform=DevicePlatform(row[2]),
            is_active=bool(row[3]),
            last_used_at=row[4] or datetime.now(timezone.utc),
        )

    def register(self, user_id: str, token: str, platform: DevicePlatform) -> DeviceRegistration:
        self._execute(
            f"""
            INSERT INTO {self.table_name}
                (user_id, token, platform, is_active, last_used_at, updated_at)
            VALUES (%s, %s, %s, true, NOW(), NOW())
            ON CONFLICT (user_id, token)
            DO UPDATE SET is_active = true, platform = EXCLUDED.platform,
                          last_used_at = NOW(), updated_at = NOW()
            """,
            (user_id, token, platform.value),
        )
        return DeviceRegistration(user_id=user_id, token=token, platform=platform)

    def deactivate(self, user_id: str, token: str) -> bool:
        updated = self._execute(
            f"""
            UPDATE {self.table_name}
            SET is_active = false, updated_at = NOW()
            WHERE user_id = %s AND token = %s AND is_active = true
            """,
            (user_id, token),
        )
        return updated > 0

    def active_devices(self, user_id: str) -> List[DeviceRegistration]:
        return self._fetchall(
            f"""
            SELECT user_id, token, platform, is_active, last_used_at
            FROM {self.table_name}
            WHERE user_id = %s AND is_active = true
            """,
            (user_id,),
        )

    def active_user_ids(self) -> List[str]:
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"SELECT DISTINCT user_id FROM {self.table_name} "
                        "WHERE is_active = true ORDER BY user_id"
                    )
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise self._storage_error("SELECT", e)
        return [str(row[0]) for row in rows]
