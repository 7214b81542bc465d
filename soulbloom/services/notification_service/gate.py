"""Notification admission control.

Decides whether a notification may reach a user's devices and records
every decision in the append-only log. Checks run in order and stop at
the first failure:

1. The type's preference flag is not switched off  -> "disabled"
2. The user is not inside quiet hours               -> "quiet_hours"
3. Fewer than `daily_limit` sent in the last 24h    -> "daily_limit"
4. None of this type sent in the last 12h           -> "type_limit"

Counts come from the log itself, never from counters. A send is
admitted and appended as `sent` under the user's lock before any device
is contacted, so two concurrent sends cannot both see room under a cap
and a send the log cannot record is never delivered.
"""
import logging
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from soulbloom.shared.database import RepositoryError
from soulbloom.shared.models import (
    DevicePlatform,
    DeviceRegistration,
    NotificationLogEntry,
    NotificationPreferences,
    NotificationStatus,
    NotificationType,
)
from soulbloom.shared.utils import ensure_pii_salt, hash_pii

from .config import (
    DAILY_WINDOW_HOURS,
    DEFAULT_HISTORY_LIMIT,
    MAX_SENT_PER_TYPE,
    TYPE_COOLDOWN_HOURS,
)
from .device_repository import DeviceRepository
from .log_repository import NotificationLogRepository, new_entry_id
from .preferences_repository import PreferencesRepository
from .quiet_hours import is_quiet_time
from .transport import (
    DeliveryError,
    DeliveryOutcome,
    PushTransport,
    build_payload,
)

logger = logging.getLogger(__name__)


class BlockReason:
    """Reasons recorded on blocked log entries."""
    DISABLED = "disabled"
    QUIET_HOURS = "quiet_hours"
    DAILY_LIMIT = "daily_limit"
    TYPE_LIMIT = "type_limit"
    NO_DEVICES = "no_devices"
    STORAGE_ERROR = "storage_error"
    PUSH_UNAVAILABLE = "push_unavailable"


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"allowed": self.allowed}
        if self.reason:
            result["reason"] = self.reason
        return result


@dataclass(frozen=True)
class DeviceResult:
    """Delivery outcome for one device."""
    platform: DevicePlatform
    token_hash: str
    outcome: DeliveryOutcome
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "token_hash": self.token_hash,
            "outcome": self.outcome.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class SendResult:
    success: bool
    reason: Optional[str] = None
    device_results: Tuple[DeviceResult, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.reason:
            result["reason"] = self.reason
        if self.device_results:
            result["results"] = [r.to_dict() for r in self.device_results]
        return result


@dataclass(frozen=True)
class BulkSendSummary:
    total: int
    successful: int
    failed: int
    results: Tuple[SendResult, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationGate:
    """Admission control, delivery and audit logging for push notifications.

    `transport` may be None when push is disabled; sends are then logged
    as blocked with reason "push_unavailable".
    """

    def __init__(
        self,
        preferences: PreferencesRepository,
        devices: DeviceRepository,
        log: NotificationLogRepository,
        transport: Optional[PushTransport] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.preferences = preferences
        self.devices = devices
        self.log = log
        self.transport = transport
        self._now = now or _utc_now
        ensure_pii_salt()
        # Entries vanish once no send for the user holds the lock
        self._user_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Stored preferences, or defaults when none are stored or the read fails."""
        try:
            stored = self.preferences.get(user_id)
        except (RepositoryError, ValueError) as e:
            # ValueError: stored document no longer validates
            logger.warning(
                "PREFERENCES_READ_FAILED_USING_DEFAULTS",
                extra={"user_hash": hash_pii(user_id), "error": str(e)}
            )
            return NotificationPreferences()
        return stored if stored is not None else NotificationPreferences()

    def update_preferences(self, user_id: str, updates: Mapping[str, Any]) -> NotificationPreferences:
        """Apply a partial update and persist the result.

        Raises:
            ValueError: If an updated value is invalid
            StorageError: If the preferences cannot be saved
        """
        updated = self.get_preferences(user_id).merged(updates)
        self.preferences.save(user_id, updated)
        logger.info(
            "PREFERENCES_UPDATED",
            extra={"user_hash": hash_pii(user_id), "keys": sorted(updates)}
        )
        return updated

    def register_device(self, user_id: str, token: str, platform: DevicePlatform) -> DeviceRegistration:
        registration = self.devices.register(user_id, token, platform)
        logger.info(
            "DEVICE_REGISTERED",
            extra={"user_hash": hash_pii(user_id), "platform": platform.value}
        )
        return registration

    def unregister_device(self, user_id: str, token: str) -> bool:
        changed = self.devices.deactivate(user_id, token)
        logger.info(
            "DEVICE_UNREGISTERED",
            extra={"user_hash": hash_pii(user_id), "changed": changed}
        )
        return changed

    def can_send(self, user_id: str, notification_type: NotificationType) -> AdmissionDecision:
        """Evaluate admission without sending or logging."""
        return self._admit(user_id, notification_type, self.log, self._now())

    def _admit(
        self,
        user_id: str,
        notification_type: NotificationType,
        log: NotificationLogRepository,
        now: datetime,
    ) -> AdmissionDecision:
        prefs = self.get_preferences(user_id)

        if not prefs.is_type_enabled(notification_type):
            return AdmissionDecision(False, BlockReason.DISABLED)

        if is_quiet_time(now, prefs):
            return AdmissionDecision(False, BlockReason.QUIET_HOURS)

        try:
            sent_today = log.count_sent_since(user_id, now - timedelta(hours=DAILY_WINDOW_HOURS))
            if sent_today >= prefs.daily_limit:
                return AdmissionDecision(False, BlockReason.DAILY_LIMIT)

            sent_of_type = log.count_sent_since(
                user_id, now - timedelta(hours=TYPE_COOLDOWN_HOURS), notification_type
            )
        except RepositoryError as e:
            logger.error(
                "NOTIFICATION_COUNT_FAILED",
                extra={"user_hash": hash_pii(user_id), "error": str(e)}
            )
            return AdmissionDecision(False, BlockReason.STORAGE_ERROR)

        if sent_of_type >= MAX_SENT_PER_TYPE:
            return AdmissionDecision(False, BlockReason.TYPE_LIMIT)

        return AdmissionDecision(True)

    def send(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> SendResult:
        """Admit, deliver and log one notification for a user."""
        data = dict(data or {})
        with self._lock_for(user_id):
            try:
                with self.log.locked(user_id) as log:
                    return self._send_locked(user_id, notification_type, title, body, data, log)
            except RepositoryError as e:
                # The locked scope itself could not be opened or committed
                logger.error(
                    "NOTIFICATION_STORAGE_FAILED",
                    extra={"user_hash": hash_pii(user_id), "error": str(e)}
                )
                return SendResult(False, BlockReason.STORAGE_ERROR)

    def _send_locked(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        data: Dict[str, Any],
        log: NotificationLogRepository,
    ) -> SendResult:
        now = self._now()
        user_hash = hash_pii(user_id)

        if self.transport is None:
            return self._block(log, user_id, notification_type, title, body, data, now,
                               BlockReason.PUSH_UNAVAILABLE)

        decision = self._admit(user_id, notification_type, log, now)
        if not decision.allowed:
            return self._block(log, user_id, notification_type, title, body, data, now,
                               decision.reason)

        try:
            devices = self.devices.active_devices(user_id)
        except RepositoryError as e:
            logger.error("DEVICE_LOOKUP_FAILED", extra={"user_hash": user_hash, "error": str(e)})
            return self._block(log, user_id, notification_type, title, body, data, now,
                               BlockReason.STORAGE_ERROR)
        if not devices:
            return self._block(log, user_id, notification_type, title, body, data, now,
                               BlockReason.NO_DEVICES)

        payload = build_payload(notification_type, title, body, data)
        entry = NotificationLogEntry(
            entry_id=new_entry_id(),
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            status=NotificationStatus.SENT,
            sent_at=now,
            data=data,
        )
        try:
            log.append(entry)
        except RepositoryError as e:
            # Nothing is delivered that the caps cannot see
            logger.error(
                "NOTIFICATION_LOG_WRITE_FAILED",
                extra={"user_hash": user_hash, "status": entry.status.value, "error": str(e)}
            )
            return SendResult(False, BlockReason.STORAGE_ERROR)

        results = [self._deliver(device, payload) for device in devices]
        delivered = any(r.success for r in results)
        status = NotificationStatus.SENT if delivered else NotificationStatus.FAILED

        try:
            log.update_outcome(entry.entry_id, status, [r.to_dict() for r in results])
        except RepositoryError as e:
            # The entry stays `sent` and keeps counting toward the caps
            logger.error(
                "NOTIFICATION_OUTCOME_WRITE_FAILED",
                extra={"user_hash": user_hash, "status": status.value, "error": str(e)}
            )

        logger.info(
            "NOTIFICATION_SENT" if delivered else "NOTIFICATION_FAILED",
            extra={
                "user_hash": user_hash,
                "notification_type": notification_type.value,
                "devices": len(results),
                "delivered": sum(1 for r in results if r.success),
            }
        )
        return SendResult(
            success=delivered,
            reason=None if delivered else "delivery_failed",
            device_results=tuple(results),
        )

    def _deliver(self, device: DeviceRegistration, payload) -> DeviceResult:
        token_hash = hash_pii(device.token)
        try:
            outcome = self.transport.send_to_device(device.token, device.platform, payload)
        except DeliveryError as e:
            logger.warning(
                "DEVICE_DELIVERY_FAILED",
                extra={"token_hash": token_hash, "platform": device.platform.value, "error": str(e)}
            )
            return DeviceResult(device.platform, token_hash, DeliveryOutcome.ERROR, str(e))
        except Exception as e:
            # One device failing unexpectedly must not abort the fan-out
            logger.error(
                "DEVICE_DELIVERY_FAILED",
                extra={"token_hash": token_hash, "platform": device.platform.value,
                       "error_type": type(e).__name__},
                exc_info=True,
            )
            return DeviceResult(device.platform, token_hash, DeliveryOutcome.ERROR, type(e).__name__)

        if outcome is DeliveryOutcome.STALE_TOKEN:
            try:
                self.devices.deactivate(device.user_id, device.token)
            except RepositoryError as e:
                logger.error(
                    "STALE_TOKEN_DEACTIVATION_FAILED",
                    extra={"token_hash": token_hash, "error": str(e)}
                )
            else:
                logger.info(
                    "STALE_TOKEN_DEACTIVATED",
                    extra={"token_hash": token_hash, "platform": device.platform.value}
                )
            return DeviceResult(device.platform, token_hash, outcome, "stale_token")

        return DeviceResult(device.platform, token_hash, outcome)

    def _block(
        self,
        log: NotificationLogRepository,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        data: Dict[str, Any],
        now: datetime,
        reason: Optional[str],
    ) -> SendResult:
        logger.info(
            "NOTIFICATION_BLOCKED",
            extra={
                "user_hash": hash_pii(user_id),
                "notification_type": notification_type.value,
                "reason": reason,
            }
        )
        self._append(log, NotificationLogEntry(
            entry_id=new_entry_id(),
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            status=NotificationStatus.BLOCKED,
            sent_at=now,
            reason=reason,
            data=data,
        ))
        return SendResult(False, reason)

    def _append(self, log: NotificationLogRepository, entry: NotificationLogEntry) -> None:
        try:
            log.append(entry)
        except RepositoryError as e:
            logger.error(
                "NOTIFICATION_LOG_WRITE_FAILED",
                extra={
                    "user_hash": hash_pii(entry.user_id),
                    "status": entry.status.value,
                    "reason": entry.reason,
                    "error": str(e),
                }
            )

    def send_to_users(
        self,
        user_ids: Sequence[str],
        notification_type: NotificationType,
        title: str,
        body: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> BulkSendSummary:
        results = [self.send(uid, notification_type, title, body, data) for uid in user_ids]
        successful = sum(1 for r in results if r.success)
        return BulkSendSummary(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=tuple(results),
        )

    def send_test_notification(self, user_id: str) -> SendResult:
        return self.send(
            user_id,
            NotificationType.DEFAULT,
            "Test Notification",
            "This is a test notification from SoulBloom.",
            {"test": "true"},
        )

    def history(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[NotificationLogEntry]:
        """Most recent log entries for a user, newest first."""
        return self.log.history(user_id, limit)


_default_gate: Optional[NotificationGate] = None


def get_gate() -> NotificationGate:
    """Get or create the gate backed by PostgreSQL and SNS from the environment."""
    global _default_gate
    if _default_gate is None:
        from soulbloom.shared.database import get_connection_manager
        from .config import NotificationConfig
        from .device_repository import PostgresDeviceRepository
        from .log_repository import PostgresNotificationLogRepository
        from .preferences_repository import PostgresPreferencesRepository
        from .transport import SnsPushTransport

        config = NotificationConfig.from_env()
        manager = get_connection_manager()
        _default_gate = NotificationGate(
            preferences=PostgresPreferencesRepository(manager),
            devices=PostgresDeviceRepository(manager),
            log=PostgresNotificationLogRepository(manager),
            transport=SnsPushTransport(config) if config.push_enabled else None,
        )
    return _default_gate


def send_notification(
    user_id: str,
    notification_type: NotificationType,
    title: str,
    body: str,
    data: Optional[Mapping[str, Any]] = None,
) -> SendResult:
    """Send through the environment-configured gate."""
    return get_gate().send(user_id, NotificationType(notification_type), title, body, data)
