"""Notification channels for processing failure alerts.

Email goes to the video owner and to operators; Slack goes to the
operators' webhook.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import httpx

from streamforge.core.config import settings


@dataclass
class ChannelDeliveryResult:
    """Result of a channel delivery attempt."""
    success: bool
    channel: str
    recipient: str
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class SmtpConfig:
    host: str
    port: int = 587
    user: str = ""
    password: str = ""
    from_email: str = ""
    use_tls: bool = True

    @classmethod
    def from_settings(cls) -> "SmtpConfig":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            use_tls=settings.SMTP_TLS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_email)


class NotificationChannelBase(ABC):
    """Base class for notification channels."""

    channel_name: str = "base"

    @abstractmethod
    async def deliver(
        self,
        recipient: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> ChannelDeliveryResult:
        """Deliver notification to recipient.

        Args:
            recipient: Channel-specific recipient identifier
            title: Notification title
            message: Notification message body
            payload: Additional key/value details

        Returns:
            ChannelDeliveryResult with delivery status
        """
        pass

    def _create_success_result(self, recipient: str) -> ChannelDeliveryResult:
        return ChannelDeliveryResult(
            success=True,
            channel=self.channel_name,
            recipient=recipient,
            delivered_at=datetime.utcnow(),
        )

    def _create_failure_result(self, recipient: str, error: str) -> ChannelDeliveryResult:
        return ChannelDeliveryResult(
            success=False,
            channel=self.channel_name,
            recipient=recipient,
            error=error,
        )


class EmailChannel(NotificationChannelBase):
    """Email notification channel using SMTP."""

    channel_name = "email"

    def __init__(self, config: Optional[SmtpConfig] = None):
        self.config = config or SmtpConfig.from_settings()

    async def deliver(
        self,
        recipient: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> ChannelDeliveryResult:
        """Deliver notification via email."""
        if not self.config.configured:
            return self._create_failure_result(recipient, "SMTP not configured")

        msg = self.build_message(recipient, title, message, payload)
        try:
            # smtplib blocks, keep it off the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._send_smtp, recipient, msg)
        except (smtplib.SMTPException, OSError) as e:
            return self._create_failure_result(recipient, str(e))

        return self._create_success_result(recipient)

    def build_message(
        self,
        recipient: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = title
        msg["From"] = self.config.from_email
        msg["To"] = recipient

        lines = [message]
        if payload:
            lines.append("")
            lines.extend(f"{key}: {value}" for key, value in payload.items())
        text = "\n".join(lines)
        msg.attach(MIMEText(text, "plain"))

        html_content = f"""
        <html>
        <body>
            <h2>{escape(title)}</h2>
            <p>{escape(text).replace(chr(10), '<br>')}</p>
        </body>
        </html>
        """
        msg.attach(MIMEText(html_content, "html"))
        return msg

    def _send_smtp(self, recipient: str, msg: MIMEMultipart) -> None:
        """Send email via SMTP (blocking operation)."""
        with smtplib.SMTP(self.config.host, self.config.port, timeout=30) as server:
            if self.config.use_tls:
                server.starttls()

            if self.config.user and self.config.password:
                server.login(self.config.user, self.config.password)

            server.sendmail(self.config.from_email, recipient, msg.as_string())


class SlackChannel(NotificationChannelBase):
    """Slack notification channel using webhooks."""

    channel_name = "slack"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    async def deliver(
        self,
        recipient: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> ChannelDeliveryResult:
        """Deliver notification via Slack webhook."""
        if not recipient or not recipient.startswith("https://hooks.slack.com/"):
            return self._create_failure_result(recipient, "Invalid Slack webhook URL")

        slack_payload = {
            "text": title,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": title, "emoji": True},
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": message},
                },
            ],
        }
        if payload:
            fields = [
                {"type": "mrkdwn", "text": f"*{key}:* {value}"}
                for key, value in payload.items()
            ]
            slack_payload["blocks"].append({
                "type": "section",
                "fields": fields[:10],  # Slack limit
            })

        try:
            if self._client is not None:
                response = await self._client.post(recipient, json=slack_payload, timeout=30.0)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(recipient, json=slack_payload, timeout=30.0)
        except httpx.TimeoutException:
            return self._create_failure_result(recipient, "Slack webhook timeout")
        except httpx.HTTPError as e:
            return self._create_failure_result(recipient, str(e))

        if response.status_code != 200:
            return self._create_failure_result(
                recipient,
                f"Slack API error: {response.status_code} - {response.text}",
            )
        return self._create_success_result(recipient)
