"""Notification Service configuration."""
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from soulbloom.shared.models import DevicePlatform

# Admission windows on the append-only log
DAILY_WINDOW_HOURS = 24
TYPE_COOLDOWN_HOURS = 12
MAX_SENT_PER_TYPE = 1

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class NotificationConfig:
    """Push delivery settings.

    Platform application ARNs map each device platform to the SNS
    platform application its endpoints are created under.
    """
    push_enabled: bool = True
    sns_region: str = "us-east-1"
    platform_application_arns: Dict[str, str] = field(default_factory=dict)

    def application_arn(self, platform: DevicePlatform) -> Optional[str]:
        return self.platform_application_arns.get(platform.value)

    @classmethod
    def from_env(cls) -> "NotificationConfig":
        """Create config from environment variables.

        Environment variables:
            PUSH_ENABLED: "false" disables delivery (sends are logged as blocked)
            SNS_REGION: AWS region for SNS (falls back to AWS_REGION)
            SNS_IOS_APPLICATION_ARN / SNS_ANDROID_APPLICATION_ARN /
            SNS_WEB_APPLICATION_ARN: platform application ARNs
        """
        arns = {}
        for platform in DevicePlatform:
            arn = os.getenv(f"SNS_{platform.value.upper()}_APPLICATION_ARN")
            if arn:
                arns[platform.value] = arn
        return cls(
            push_enabled=os.getenv("PUSH_ENABLED", "true").lower() == "true",
            sns_region=os.getenv("SNS_REGION", os.getenv("AWS_REGION", "us-east-1")),
            platform_application_arns=arns,
        )
