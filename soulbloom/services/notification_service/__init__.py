"""Notification Service: push admission control and delivery.

Every send passes the preference, quiet-hours, daily-cap and per-type
cooldown checks, and every outcome is written to the append-only
notification log the caps are computed from.

Components:
- gate.py: NotificationGate (admission, delivery, audit log)
- quiet_hours.py: User-local quiet window evaluation
- transport.py: PushTransport interface and SNS delivery
- *_repository.py: Preferences, devices and log (in-memory and PostgreSQL)
- handler.py: Flask HTTP endpoints (/notifications/...)

Usage:
    from soulbloom.services.notification_service import send_notification
    result = send_notification(user_id, NotificationType.RE_ENGAGEMENT, title, body)
"""

from .config import NotificationConfig
from .device_repository import (
    DeviceRepository,
    InMemoryDeviceRepository,
    PostgresDeviceRepository,
)
from .gate import (
    AdmissionDecision,
    BlockReason,
    BulkSendSummary,
    DeviceResult,
    NotificationGate,
    SendResult,
    get_gate,
    send_notification,
)
from .log_repository import (
    NotificationLogRepository,
    InMemoryNotificationLogRepository,
    PostgresNotificationLogRepository,
)
from .preferences_repository import (
    PreferencesRepository,
    InMemoryPreferencesRepository,
    PostgresPreferencesRepository,
)
from .quiet_hours import in_window, is_quiet_time
from .transport import (
    DeliveryError,
    DeliveryOutcome,
    PushPayload,
    PushTransport,
    SnsPushTransport,
    build_payload,
    channel_for,
)

__all__ = [
    "NotificationConfig",
    "DeviceRepository",
    "InMemoryDeviceRepository",
    "PostgresDeviceRepository",
    "AdmissionDecision",
    "BlockReason",
    "BulkSendSummary",
    "DeviceResult",
    "NotificationGate",
    "SendResult",
    "get_gate",
    "send_notification",
    "NotificationLogRepository",
    "InMemoryNotificationLogRepository",
    "PostgresNotificationLogRepository",
    "PreferencesRepository",
    "InMemoryPreferencesRepository",
    "PostgresPreferencesRepository",
    "in_window",
    "is_quiet_time",
    "DeliveryError",
    "DeliveryOutcome",
    "PushPayload",
    "PushTransport",
    "SnsPushTransport",
    "build_payload",
    "channel_for",
]
