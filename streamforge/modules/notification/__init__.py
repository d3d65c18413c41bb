"""Failure notifications to video owners and operators."""

from streamforge.modules.notification.channels import (
    ChannelDeliveryResult,
    EmailChannel,
    NotificationChannelBase,
    SlackChannel,
    SmtpConfig,
)
from streamforge.modules.notification.notifier import (
    ProcessingFailureEvent,
    ProcessingFailureNotifier,
)

__all__ = [
    "ChannelDeliveryResult",
    "EmailChannel",
    "NotificationChannelBase",
    "SlackChannel",
    "SmtpConfig",
    "ProcessingFailureEvent",
    "ProcessingFailureNotifier",
]
