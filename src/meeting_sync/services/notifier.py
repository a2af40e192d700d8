"""Slack incoming-webhook notifier.

Posts a Block Kit summary of each processed meeting. Notifications are
best-effort: the Orchestrator runs them as background tasks and only logs
NotificationError.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.meeting_sync.core.exceptions import NotificationError
from src.meeting_sync.services.models import MeetingDigest

logger = structlog.get_logger(__name__)

_slack_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


def build_slack_message(digest: MeetingDigest, channel: str | None = None) -> dict[str, Any]:
    """Block Kit payload for one processed meeting."""
    action_items_text = (
        "\n".join(f"• {item}" for item in digest.action_items)
        if digest.action_items
        else "No action items"
    )
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": f"\U0001F4DD {digest.title}"}},
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Type:*\n{digest.meeting_type}"},
                {"type": "mrkdwn", "text": f"*Date:*\n{digest.date}"},
                {"type": "mrkdwn", "text": f"*Attendees:*\n{len(digest.attendees)}"},
                {"type": "mrkdwn", "text": f"*Action Items:*\n{len(digest.action_items)}"},
            ],
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": f"*Summary:*\n{digest.summary}"}},
        {"type": "section", "text": {"type": "mrkdwn", "text": f"*Action Items:*\n{action_items_text}"}},
    ]
    if digest.urgent_alert:
        blocks.append(
            {"type": "section", "text": {"type": "mrkdwn", "text": f"\U0001F534 *Urgent:* {digest.urgent_alert}"}}
        )
    blocks.append({"type": "divider"})
    if digest.presentation_url:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*<{digest.presentation_url}|View Gamma Presentation>*"},
        })
    footer = f"{digest.files_changed} file(s) updated"
    if channel:
        footer = f"Posted to {channel} | {footer}"
    blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": footer}]})

    return {"text": f"Meeting processed: {digest.title}", "blocks": blocks}


class SlackNotifier:
    """Sends meeting digests to a Slack incoming webhook.

    Args:
        webhook_url: Incoming webhook URL. Empty disables notifications.
        channel: Channel name shown in the footer.
    """

    TIMEOUT = 10.0

    def __init__(self, webhook_url: str = "", channel: str = "") -> None:
        self._webhook_url = webhook_url
        self._channel = channel

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    @_slack_retry
    async def _post(self, message: dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.post(self._webhook_url, json=message)
            response.raise_for_status()

    async def notify(self, digest: MeetingDigest) -> bool:
        """Post a digest. Returns False when no webhook is configured.

        Raises:
            NotificationError: Slack rejected the message after retries.
        """
        if not self.enabled:
            logger.info("notifier.skipped", reason="no_webhook_url")
            return False

        try:
            await self._post(build_slack_message(digest, self._channel))
        except httpx.HTTPError as exc:
            raise NotificationError(f"Slack notification failed: {exc}") from exc

        logger.info("notifier.sent", channel=self._channel, title=digest.title)
        return True
