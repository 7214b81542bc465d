"""Tests for notification admission, delivery and logging."""
import gc
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from soulbloom.shared.database import StorageError
from soulbloom.shared.models import (
    DevicePlatform,
    NotificationPreferences,
    NotificationStatus,
    NotificationType,
)
from soulbloom.shared.utils import configure_pii_salt, pii
from soulbloom.services.notification_service import (
    BlockReason,
    DeliveryError,
    DeliveryOutcome,
    InMemoryDeviceRepository,
    InMemoryNotificationLogRepository,
    InMemoryPreferencesRepository,
    NotificationGate,
    PushTransport,
)

# Noon in New York, outside the default quiet hours
NOON = datetime(2024, 12, 24, 17, 0, tzinfo=timezone.utc)
PATTERN = NotificationType.PATTERN_INTERVENTION


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class Clock:
    """Settable time source."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock(NOON)


@pytest.fixture
def transport():
    transport = MagicMock(spec=PushTransport)
    transport.send_to_device.return_value = DeliveryOutcome.SUCCESS
    return transport


@pytest.fixture
def devices():
    repo = InMemoryDeviceRepository()
    repo.register("user_1", "token_ios", DevicePlatform.IOS)
    return repo


@pytest.fixture
def preferences():
    return InMemoryPreferencesRepository()


@pytest.fixture
def log():
    return InMemoryNotificationLogRepository()


@pytest.fixture
def gate(preferences, devices, log, transport, clock):
    return NotificationGate(preferences, devices, log, transport, now=clock)


def statuses(log, user_id="user_1"):
    return [(e.status, e.reason) for e in log.entries() if e.user_id == user_id]


class TestAdmission:
    """Tests for the ordered admission checks."""

    def test_first_send_is_allowed(self, gate, log, transport):
        result = gate.send("user_1", PATTERN, "Hello", "Body", {"days": 3})

        assert result.success is True
        assert result.device_results[0].outcome is DeliveryOutcome.SUCCESS
        entry = log.entries()[0]
        assert entry.status is NotificationStatus.SENT
        assert entry.data == {"days": 3}
        payload = transport.send_to_device.call_args[0][2]
        assert payload.data_fields() == {"days": "3", "type": "pattern_intervention"}

    def test_disabled_type(self, gate, preferences, log):
        preferences.save("user_1", NotificationPreferences().merged({"pattern_intervention": False}))

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.success is False
        assert result.reason == BlockReason.DISABLED
        assert statuses(log) == [(NotificationStatus.BLOCKED, "disabled")]

    def test_disabled_checked_before_quiet_hours(self, gate, preferences, clock):
        preferences.save("user_1", NotificationPreferences().merged({"pattern_intervention": False}))
        clock.now = datetime(2024, 12, 25, 3, 0, tzinfo=timezone.utc)

        assert gate.send("user_1", PATTERN, "Hello", "Body").reason == BlockReason.DISABLED

    def test_quiet_hours(self, gate, clock, transport):
        # 22:00 in New York
        clock.now = datetime(2024, 12, 25, 3, 0, tzinfo=timezone.utc)

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.reason == BlockReason.QUIET_HOURS
        transport.send_to_device.assert_not_called()

    def test_type_limit_within_twelve_hours(self, gate, clock, preferences):
        preferences.save("user_1", NotificationPreferences(quiet_hours_enabled=False))
        assert gate.send("user_1", PATTERN, "One", "Body").success
        clock.advance(hours=11, minutes=59)

        result = gate.send("user_1", PATTERN, "Two", "Body")

        assert result.reason == BlockReason.TYPE_LIMIT

    def test_type_limit_expires(self, gate, clock, preferences):
        preferences.save("user_1", NotificationPreferences(quiet_hours_enabled=False))
        assert gate.send("user_1", PATTERN, "One", "Body").success
        clock.advance(hours=12, minutes=1)

        assert gate.send("user_1", PATTERN, "Two", "Body").success

    def test_daily_limit_counts_every_type(self, gate, preferences):
        preferences.save("user_1", NotificationPreferences(daily_limit=2))
        gate.send("user_1", PATTERN, "One", "Body")
        gate.send("user_1", NotificationType.GOAL_REMINDERS, "Two", "Body")

        result = gate.send("user_1", NotificationType.STREAK_REMINDERS, "Three", "Body")

        assert result.reason == BlockReason.DAILY_LIMIT

    def test_blocked_entries_do_not_count(self, gate, preferences, log):
        preferences.save("user_1", NotificationPreferences(daily_limit=1))
        preferences.save("user_1", preferences.get("user_1").merged({"goal_reminders": False}))
        gate.send("user_1", NotificationType.GOAL_REMINDERS, "Blocked", "Body")

        assert gate.send("user_1", PATTERN, "Allowed", "Body").success is True

    def test_zero_daily_limit_blocks_everything(self, gate, preferences):
        preferences.save("user_1", NotificationPreferences(daily_limit=0))

        assert gate.send("user_1", PATTERN, "Hello", "Body").reason == BlockReason.DAILY_LIMIT

    def test_can_send_does_not_log(self, gate, log):
        decision = gate.can_send("user_1", PATTERN)

        assert decision.allowed is True
        assert decision.to_dict() == {"allowed": True}
        assert log.entries() == []


class TestDelivery:
    """Tests for device fan-out and outcome handling."""

    def test_no_devices(self, gate, log):
        result = gate.send("user_9", PATTERN, "Hello", "Body")

        assert result.reason == BlockReason.NO_DEVICES
        assert statuses(log, "user_9") == [(NotificationStatus.BLOCKED, "no_devices")]

    def test_push_unavailable(self, preferences, devices, log, clock):
        gate = NotificationGate(preferences, devices, log, transport=None, now=clock)

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.reason == BlockReason.PUSH_UNAVAILABLE
        assert statuses(log) == [(NotificationStatus.BLOCKED, "push_unavailable")]

    def test_partial_success_counts_as_sent(self, gate, devices, transport, log):
        devices.register("user_1", "token_android", DevicePlatform.ANDROID)
        transport.send_to_device.side_effect = [
            DeliveryOutcome.SUCCESS,
            DeliveryError("throttled"),
        ]

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.success is True
        outcomes = sorted(r.outcome.value for r in result.device_results)
        assert outcomes == ["error", "success"]
        assert log.entries()[0].status is NotificationStatus.SENT
        assert len(log.entries()[0].delivery_results) == 2

    def test_all_devices_fail(self, gate, transport, log):
        transport.send_to_device.side_effect = DeliveryError("endpoint error")

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.success is False
        assert result.reason == "delivery_failed"
        assert log.entries()[0].status is NotificationStatus.FAILED

    def test_unexpected_device_error_does_not_abort_fan_out(self, gate, devices, transport, log):
        devices.register("user_1", "token_android", DevicePlatform.ANDROID)
        transport.send_to_device.side_effect = [RuntimeError("boom"), DeliveryOutcome.SUCCESS]

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert transport.send_to_device.call_count == 2
        assert result.success is True
        assert sorted(r.outcome.value for r in result.device_results) == ["error", "success"]
        assert statuses(log) == [(NotificationStatus.SENT, None)]

    def test_failed_send_does_not_use_type_budget(self, gate, transport):
        transport.send_to_device.side_effect = [DeliveryError("down"), DeliveryOutcome.SUCCESS]

        gate.send("user_1", PATTERN, "One", "Body")

        assert gate.send("user_1", PATTERN, "Two", "Body").success is True

    def test_stale_token_is_deactivated(self, gate, devices, transport):
        transport.send_to_device.return_value = DeliveryOutcome.STALE_TOKEN

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.success is False
        assert result.device_results[0].error == "stale_token"
        assert devices.active_devices("user_1") == []

    def test_tokens_are_hashed_in_results(self, gate):
        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert "token_ios" not in str(result.to_dict())


class TestStorageFailures:
    """Tests for repository failures during a send."""

    def test_preferences_read_failure_uses_defaults(self, devices, log, transport, clock):
        preferences = MagicMock()
        preferences.get.side_effect = StorageError("db down")
        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        assert gate.get_preferences("user_1") == NotificationPreferences()
        assert gate.send("user_1", PATTERN, "Hello", "Body").success is True

    def test_count_failure_blocks(self, preferences, devices, transport, clock):
        log = InMemoryNotificationLogRepository()
        log.count_sent_since = MagicMock(side_effect=StorageError("db down"))
        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.reason == BlockReason.STORAGE_ERROR
        transport.send_to_device.assert_not_called()
        assert statuses(log) == [(NotificationStatus.BLOCKED, "storage_error")]

    def test_device_lookup_failure_blocks(self, preferences, log, transport, clock):
        devices = MagicMock()
        devices.active_devices.side_effect = StorageError("db down")
        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        assert gate.send("user_1", PATTERN, "Hello", "Body").reason == BlockReason.STORAGE_ERROR

    def test_log_write_failure_blocks_delivery(self, preferences, devices, transport, clock):
        log = InMemoryNotificationLogRepository()
        log.append = MagicMock(side_effect=StorageError("disk full"))
        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        results = [gate.send("user_1", PATTERN, f"n{i}", "Body") for i in range(8)]

        assert {r.reason for r in results} == {BlockReason.STORAGE_ERROR}
        assert not any(r.success for r in results)
        transport.send_to_device.assert_not_called()

    def test_outcome_write_failure_keeps_send_counted(self, gate, log, transport, clock, preferences):
        preferences.save("user_1", NotificationPreferences(quiet_hours_enabled=False))
        transport.send_to_device.side_effect = DeliveryError("endpoint error")
        log.update_outcome = MagicMock(side_effect=StorageError("disk full"))

        assert gate.send("user_1", PATTERN, "One", "Body").reason == "delivery_failed"
        clock.advance(hours=1)

        assert gate.send("user_1", PATTERN, "Two", "Body").reason == BlockReason.TYPE_LIMIT
        assert transport.send_to_device.call_count == 1

    def test_locked_scope_failure(self, preferences, devices, transport, clock):
        log = MagicMock()
        log.locked.side_effect = StorageError("could not connect")
        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        result = gate.send("user_1", PATTERN, "Hello", "Body")

        assert result.reason == BlockReason.STORAGE_ERROR
        transport.send_to_device.assert_not_called()


class TestConcurrentSends:
    """Caps must hold when sends for one user race."""

    def test_concurrent_sends_never_exceed_caps(self, preferences, devices, log, clock):
        preferences.save("user_1", NotificationPreferences(daily_limit=3))
        transport = MagicMock(spec=PushTransport)

        def slow_send(token, platform, payload):
            time.sleep(0.01)
            return DeliveryOutcome.SUCCESS

        transport.send_to_device.side_effect = slow_send
        gate = NotificationGate(preferences, devices, log, transport, now=clock)
        types = list(NotificationType)
        barrier = threading.Barrier(20)

        def worker(i):
            barrier.wait()
            gate.send("user_1", types[i % len(types)], f"n{i}", "Body")

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = log.entries()
        sent = [e for e in entries if e.status is NotificationStatus.SENT]
        assert len(entries) == 20
        assert len(sent) == 3
        assert len({e.notification_type for e in sent}) == 3

    def test_same_type_race_sends_once(self, gate, log):
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            gate.send("user_1", PATTERN, "Hello", "Body")

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        sent = [e for e in log.entries() if e.status is NotificationStatus.SENT]
        assert len(sent) == 1


class TestGateOperations:
    """Tests for preferences, devices, bulk and test sends."""

    def test_update_preferences_is_partial(self, gate, preferences):
        updated = gate.update_preferences("user_1", {"daily_limit": 2, "goal_reminders": False})

        assert updated.daily_limit == 2
        assert updated.is_type_enabled(NotificationType.GOAL_REMINDERS) is False
        assert updated.quiet_hours_start == "21:00"
        assert preferences.get("user_1") == updated

    def test_register_and_unregister_device(self, gate, devices):
        gate.register_device("user_2", "token_web", DevicePlatform.WEB)

        assert [d.token for d in devices.active_devices("user_2")] == ["token_web"]
        assert gate.unregister_device("user_2", "token_web") is True
        assert devices.active_devices("user_2") == []

    def test_send_to_users(self, gate):
        summary = gate.send_to_users(["user_1", "user_2"], PATTERN, "Hello", "Body")

        assert summary.total == 2
        assert summary.successful == 1
        assert summary.failed == 1
        assert summary.results[1].reason == BlockReason.NO_DEVICES

    def test_test_notification(self, gate, log):
        result = gate.send_test_notification("user_1")

        assert result.success is True
        entry = log.entries()[0]
        assert entry.notification_type is NotificationType.DEFAULT
        assert entry.title == "Test Notification"
        assert entry.data == {"test": "true"}

    def test_history_newest_first(self, gate, clock):
        gate.send("user_1", PATTERN, "First", "Body")
        clock.advance(minutes=5)
        gate.send("user_1", PATTERN, "Second", "Body")

        history = gate.history("user_1", limit=1)

        assert [e.title for e in history] == ["Second"]


class TestUserLocks:
    """Per-user send locks only live while a send holds them."""

    def test_lock_released_after_send(self, gate):
        gate.send("user_1", PATTERN, "Hello", "Body")
        gc.collect()

        assert len(gate._user_locks) == 0

    def test_many_users_leave_no_locks(self, gate):
        for i in range(200):
            gate.send(f"user_{i}", PATTERN, "Hello", "Body")
        gc.collect()

        assert len(gate._user_locks) == 0

    def test_same_user_shares_one_lock(self, gate):
        held = gate._lock_for("user_1")

        assert gate._lock_for("user_1") is held
        assert len(gate._user_locks) == 1


class TestSaltConfiguration:
    """A gate built outside the HTTP handler still hashes user ids."""

    def test_gate_configures_missing_salt(self, preferences, devices, log, transport, clock, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)
        monkeypatch.delenv("PII_HASH_SALT", raising=False)

        gate = NotificationGate(preferences, devices, log, transport, now=clock)

        assert gate.send("user_1", PATTERN, "Hello", "Body").success is True
