"""Tests for processing failure notifications and their channels."""

import uuid

import httpx
import pytest
from hypothesis import given, settings, strategies as st

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

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"

email_strategy = st.emails()


class RecordingChannel(NotificationChannelBase):
    def __init__(self, name: str, fail: bool = False):
        self.channel_name = name
        self.fail = fail
        self.recipients: list[str] = []

    async def deliver(self, recipient, title, message, payload=None) -> ChannelDeliveryResult:
        self.recipients.append(recipient)
        if self.fail:
            return self._create_failure_result(recipient, "rejected")
        return self._create_success_result(recipient)


def make_event(owner_email=None) -> ProcessingFailureEvent:
    return ProcessingFailureEvent(
        video_id=uuid.uuid4(),
        title="Keynote",
        error="thumbnails: No thumbnail could be extracted",
        attempts=3,
        owner_email=owner_email,
    )


class TestRecipients:
    """Property tests for email recipient selection."""

    @given(owner=st.one_of(st.none(), email_strategy), admins=st.lists(email_strategy, max_size=5))
    @settings(max_examples=100)
    def test_owner_first_without_duplicates(self, owner, admins) -> None:
        notifier = ProcessingFailureNotifier(
            email_channel=RecordingChannel("email"),
            slack_channel=RecordingChannel("slack"),
            admin_emails=admins,
            slack_webhook="",
        )
        recipients = notifier.email_recipients(make_event(owner))

        assert len(recipients) == len(set(recipients))
        assert set(recipients) == ({owner} if owner else set()) | set(admins)
        if owner:
            assert recipients[0] == owner


class TestNotifier:

    @pytest.mark.asyncio
    async def test_notifies_owner_operators_and_slack(self):
        email, slack = RecordingChannel("email"), RecordingChannel("slack")
        notifier = ProcessingFailureNotifier(
            email_channel=email,
            slack_channel=slack,
            admin_emails=["ops@example.com", "owner@example.com"],
            slack_webhook=WEBHOOK,
        )

        results = await notifier.notify(make_event("owner@example.com"))

        assert email.recipients == ["owner@example.com", "ops@example.com"]
        assert slack.recipients == [WEBHOOK]
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_channel_errors_are_reported_not_raised(self):
        class ExplodingChannel(RecordingChannel):
            async def deliver(self, recipient, title, message, payload=None):
                raise OSError("network unreachable")

        notifier = ProcessingFailureNotifier(
            email_channel=ExplodingChannel("email"),
            slack_channel=RecordingChannel("slack", fail=True),
            admin_emails=["ops@example.com"],
            slack_webhook=WEBHOOK,
        )

        results = await notifier.notify(make_event())

        assert [r.success for r in results] == [False, False]
        assert results[0].error == "network unreachable"

    @pytest.mark.asyncio
    async def test_nobody_to_notify(self):
        notifier = ProcessingFailureNotifier(
            email_channel=RecordingChannel("email"),
            slack_channel=RecordingChannel("slack"),
            admin_emails=[],
            slack_webhook="",
        )
        assert await notifier.notify(make_event()) == []

    def test_event_text(self):
        event = make_event()

        assert event.subject == "Video processing failed: Keynote"
        assert "after 3 attempt(s)" in event.message()
        assert event.details()["video_id"] == str(event.video_id)


class TestEmailChannel:

    @pytest.mark.asyncio
    async def test_unconfigured_smtp(self):
        channel = EmailChannel(SmtpConfig(host=""))
        result = await channel.deliver("owner@example.com", "Subject", "Body")

        assert not result.success
        assert result.error == "SMTP not configured"

    def test_message_contains_details(self):
        channel = EmailChannel(SmtpConfig(host="smtp.example.com", from_email="noreply@example.com"))
        msg = channel.build_message("owner@example.com", "Subject", "Body <b>", {"attempts": 3})

        assert msg["To"] == "owner@example.com"
        assert msg["From"] == "noreply@example.com"
        plain, html = msg.get_payload()
        assert "attempts: 3" in plain.get_payload()
        assert "&lt;b&gt;" in html.get_payload()


class TestSlackChannel:

    @pytest.mark.asyncio
    async def test_rejects_non_slack_url(self):
        result = await SlackChannel().deliver("https://example.com/hook", "t", "m")
        assert not result.success

    @pytest.mark.asyncio
    async def test_posts_blocks(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="ok")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await SlackChannel(client).deliver(WEBHOOK, "Failed", "details", {"attempts": 3})

        assert result.success
        assert len(requests) == 1
        body = requests[0].read().decode()
        assert '"header"' in body
        assert "*attempts:* 3" in body

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        async with httpx.AsyncClient(transport=transport) as client:
            result = await SlackChannel(client).deliver(WEBHOOK, "Failed", "details")

        assert not result.success
        assert "500" in result.error
