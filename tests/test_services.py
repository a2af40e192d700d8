"""Tests for the best-effort side-effect services: Slack and Gamma."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.meeting_sync.core.exceptions import NotificationError, PresentationError
from src.meeting_sync.processing.schemas import ProcessingResult
from src.meeting_sync.services.models import MeetingDigest
from src.meeting_sync.services.notifier import SlackNotifier, build_slack_message
from src.meeting_sync.services.presentation import GammaClient, build_presentation_content


@pytest.fixture
def digest(sample_event, processing_result) -> MeetingDigest:
    return MeetingDigest.from_result(sample_event, ProcessingResult.model_validate(processing_result))


class TestMeetingDigest:
    def test_from_result(self, digest):
        assert digest.title == "Weekly Partner Sync"
        assert digest.date == "2026-10-19"
        assert digest.meeting_type == "internal-partner"
        assert digest.summary == "Partner sync: Acme proposal due tomorrow."
        assert digest.attendees == ["Matthew", "Trent"]
        assert digest.files_changed == 2


# ── Slack ─────────────────────────────────────────────────────────────────


class TestSlackNotifier:
    def test_message_blocks(self, digest):
        digest.presentation_url = "https://gamma.app/docs/x"
        digest.urgent_alert = "Proposal due tomorrow"
        message = build_slack_message(digest, "#meetings")

        texts = str(message["blocks"])
        assert message["text"] == "Meeting processed: Weekly Partner Sync"
        assert "Send proposal to Acme (Matthew)" in texts
        assert "View Gamma Presentation" in texts
        assert "Proposal due tomorrow" in texts
        assert "Posted to #meetings" in texts

    @pytest.mark.asyncio
    async def test_disabled_without_webhook(self, digest):
        assert await SlackNotifier().notify(digest) is False

    @pytest.mark.asyncio
    async def test_posts_message(self, digest):
        notifier = SlackNotifier("https://hooks.slack.example/T/B/X", "#meetings")
        with patch.object(SlackNotifier, "_post", new=AsyncMock()) as post:
            assert await notifier.notify(digest) is True
        assert post.call_args.args[0]["text"] == "Meeting processed: Weekly Partner Sync"

    @pytest.mark.asyncio
    async def test_http_failure_raises_notification_error(self, digest):
        notifier = SlackNotifier("https://hooks.slack.example/T/B/X")
        with patch.object(SlackNotifier, "_post", new=AsyncMock(side_effect=httpx.ConnectError("down"))):
            with pytest.raises(NotificationError):
                await notifier.notify(digest)


# ── Gamma ─────────────────────────────────────────────────────────────────


class TestGammaClient:
    def test_outline_content(self, digest):
        content = build_presentation_content(digest)
        assert content.startswith("# Weekly Partner Sync\nDate: 2026-10-19")
        assert "# Key Action Items" in content
        assert "- Trent" in content

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, digest):
        assert await GammaClient().create_presentation(digest) is None

    @pytest.mark.asyncio
    async def test_returns_url(self, digest):
        client = GammaClient(api_key="g-key", theme_id="Oasis")
        generate = AsyncMock(return_value={"id": "gen-1", "webUrl": "https://gamma.app/docs/abc"})
        with patch.object(GammaClient, "_generate", new=generate):
            assert await client.create_presentation(digest) == "https://gamma.app/docs/abc"
        body = generate.call_args.args[0]
        assert body["themeId"] == "Oasis"
        assert body["inputText"].startswith("# Weekly Partner Sync")

    @pytest.mark.asyncio
    async def test_http_failure_raises_presentation_error(self, digest):
        client = GammaClient(api_key="g-key")
        with patch.object(GammaClient, "_generate", new=AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
            with pytest.raises(PresentationError):
                await client.create_presentation(digest)
