"""Push delivery transport.

Delivers one notification to one device token. Production delivery goes
through SNS platform endpoints; a token SNS reports as disabled or
unknown comes back as STALE_TOKEN so the caller can deactivate it.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from soulbloom.shared.models import DevicePlatform, NotificationType
from soulbloom.shared.utils import hash_pii

from .config import NotificationConfig

logger = logging.getLogger(__name__)

# Android notification channel per notification type
NOTIFICATION_CHANNELS = {
    NotificationType.PATTERN_INTERVENTION: "wellness",
    NotificationType.GOAL_REMINDERS: "goals",
    NotificationType.STREAK_REMINDERS: "goals",
    NotificationType.CARE_CIRCLE_ALERTS: "care_circle",
    NotificationType.CHECK_IN_REMINDERS: "check_in_reminders",
    NotificationType.RE_ENGAGEMENT: "default",
    NotificationType.DEFAULT: "default",
}

# SNS error codes meaning the endpoint/token will never accept a message
STALE_TOKEN_ERROR_CODES = frozenset({"EndpointDisabled", "NotFound", "InvalidParameter"})


class DeliveryOutcome(Enum):
    SUCCESS = "success"
    STALE_TOKEN = "stale_token"
    ERROR = "error"


class DeliveryError(Exception):
    """Transient delivery failure for a single device."""
    pass


def channel_for(notification_type: NotificationType) -> str:
    return NOTIFICATION_CHANNELS.get(notification_type, "default")


@dataclass(frozen=True)
class PushPayload:
    """Platform-neutral notification content."""
    notification_type: NotificationType
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def channel_id(self) -> str:
        return channel_for(self.notification_type)

    def data_fields(self) -> Dict[str, str]:
        fields = dict(self.data)
        fields["type"] = self.notification_type.value
        return fields


def build_payload(
    notification_type: NotificationType,
    title: str,
    body: str,
    data: Optional[Mapping[str, Any]] = None,
) -> PushPayload:
    """Build a payload; push data values must be strings."""
    return PushPayload(
        notification_type=notification_type,
        title=title,
        body=body,
        data={str(k): str(v) for k, v in (data or {}).items()},
    )


def sns_message(payload: PushPayload) -> str:
    """Render a payload as an SNS `MessageStructure=json` message."""
    apns = {
        "aps": {
            "alert": {"title": payload.title, "body": payload.body},
            "sound": "default",
            "badge": 1,
        },
    }
    apns.update(payload.data_fields())
    gcm = {
        "notification": {
            "title": payload.title,
            "body": payload.body,
            "android_channel_id": payload.channel_id,
            "sound": "default",
        },
        "data": payload.data_fields(),
        "priority": "high",
    }
    return json.dumps({
        "default": payload.body,
        "APNS": json.dumps(apns),
        "APNS_SANDBOX": json.dumps(apns),
        "GCM": json.dumps(gcm),
    })


class PushTransport(ABC):
    """Sends a payload to a single device."""

    @abstractmethod
    def send_to_device(
        self,
        token: str,
        platform: DevicePlatform,
        payload: PushPayload,
    ) -> DeliveryOutcome:
        """Deliver to one device.

        Returns:
            SUCCESS, or STALE_TOKEN when the token is permanently invalid

        Raises:
            DeliveryError: On any other delivery failure
        """
        pass


class SnsPushTransport(PushTransport):
    """Delivers through SNS mobile push platform endpoints."""

    def __init__(self, config: Optional[NotificationConfig] = None):
        self.config = config or NotificationConfig()
        self._sns_client = None

        logger.info(
            "SNS_TRANSPORT_INITIALIZED",
            extra={
                "region": self.config.sns_region,
                "platforms": sorted(self.config.platform_application_arns),
            }
        )

    @property
    def sns_client(self):
        """Lazy initialization of SNS client."""
        if self._sns_client is None:
            import boto3
            self._sns_client = boto3.client("sns", region_name=self.config.sns_region)
        return self._sns_client

    def send_to_device(
        self,
        token: str,
        platform: DevicePlatform,
        payload: PushPayload,
    ) -> DeliveryOutcome:
        application_arn = self.config.application_arn(platform)
        if not application_arn:
            raise DeliveryError(f"No SNS platform application configured for {platform.value}")

        try:
            endpoint = self.sns_client.create_platform_endpoint(
                PlatformApplicationArn=application_arn,
                Token=token,
            )
            response = self.sns_client.publish(
                TargetArn=endpoint["EndpointArn"],
                Message=sns_message(payload),
                MessageStructure="json",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in STALE_TOKEN_ERROR_CODES:
                logger.warning(
                    "PUSH_TOKEN_STALE",
                    extra={"token_hash": hash_pii(token), "platform": platform.value, "code": code}
                )
                return DeliveryOutcome.STALE_TOKEN
            raise DeliveryError(f"SNS publish failed ({code}): {e}") from e
        except BotoCoreError as e:
            raise DeliveryError(f"SNS publish failed: {e}") from e

        logger.info(
            "PUSH_DELIVERED",
            extra={
                "token_hash": hash_pii(token),
                "platform": platform.value,
                "message_id": response.get("MessageId"),
            }
        )
        return DeliveryOutcome.SUCCESS
