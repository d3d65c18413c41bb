"""Terminal processing failure notifications.

Delivery problems are logged and swallowed: a notification that cannot be
sent never changes the outcome of the job that triggered it.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from streamforge.core.config import settings
from streamforge.core.logging import log_error, log_warning
from streamforge.modules.notification.channels import (
    ChannelDeliveryResult,
    EmailChannel,
    NotificationChannelBase,
    SlackChannel,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessingFailureEvent:
    """A video that will not be retried again."""
    video_id: uuid.UUID
    title: str
    error: str
    attempts: int
    owner_email: Optional[str] = None

    @property
    def subject(self) -> str:
        return f"Video processing failed: {self.title or self.video_id}"

    def message(self) -> str:
        return (
            f"Processing of video \"{self.title or self.video_id}\" failed after "
            f"{self.attempts} attempt(s) and will not be retried automatically.\n\n"
            f"Error: {self.error}"
        )

    def details(self) -> dict:
        return {
            "video_id": str(self.video_id),
            "attempts": self.attempts,
            "error": self.error,
        }


class ProcessingFailureNotifier:
    """Sends failure notifications to the owner and to operators."""

    def __init__(
        self,
        email_channel: Optional[NotificationChannelBase] = None,
        slack_channel: Optional[NotificationChannelBase] = None,
        admin_emails: Optional[Iterable[str]] = None,
        slack_webhook: Optional[str] = None,
    ):
        self.email_channel = email_channel or EmailChannel()
        self.slack_channel = slack_channel or SlackChannel()
        self.admin_emails = list(
            admin_emails if admin_emails is not None else settings.ADMIN_NOTIFICATION_EMAILS
        )
        self.slack_webhook = (
            slack_webhook if slack_webhook is not None else settings.NOTIFICATION_SLACK_WEBHOOK
        )

    def email_recipients(self, event: ProcessingFailureEvent) -> list[str]:
        """Owner first, then operators, without duplicates."""
        recipients = [event.owner_email, *self.admin_emails]
        return list(dict.fromkeys(r for r in recipients if r))

    async def notify(self, event: ProcessingFailureEvent) -> list[ChannelDeliveryResult]:
        results = []
        for recipient in self.email_recipients(event):
            results.append(await self._deliver(self.email_channel, recipient, event))
        if self.slack_webhook:
            results.append(await self._deliver(self.slack_channel, self.slack_webhook, event))

        if not results:
            log_warning(
                logger,
                f"No recipients for failure notification of video {event.video_id}",
                video_id=str(event.video_id),
            )
        return results

    async def _deliver(
        self,
        channel: NotificationChannelBase,
        recipient: str,
        event: ProcessingFailureEvent,
    ) -> ChannelDeliveryResult:
        try:
            result = await channel.deliver(
                recipient, event.subject, event.message(), event.details()
            )
        except Exception as e:
            log_error(
                logger,
                f"{channel.channel_name} notification for video {event.video_id} raised",
                exception=e,
                video_id=str(event.video_id),
            )
            return ChannelDeliveryResult(
                success=False,
                channel=channel.channel_name,
                recipient=recipient,
                error=str(e),
            )

        if not result.success:
            log_warning(
                logger,
                f"{channel.channel_name} notification for video {event.video_id} failed: {result.error}",
                video_id=str(event.video_id),
                recipient=recipient,
            )
        return result
