"""Gamma presentation generation client.

Requests an auto-generated slide deck for a processed meeting. Like
notifications, presentations are best-effort and never affect the outcome
of the pipeline.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.meeting_sync.core.exceptions import PresentationError
from src.meeting_sync.services.models import MeetingDigest

logger = structlog.get_logger(__name__)

GAMMA_API_URL = "https://public-api.gamma.app/v1.0"

_gamma_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


def build_presentation_content(digest: MeetingDigest) -> str:
    """Outline text Gamma turns into cards."""
    lines = [
        f"# {digest.title}",
        f"Date: {digest.date}",
        f"Type: {digest.meeting_type}",
        "",
        "# Meeting Summary",
        digest.summary,
        "",
    ]
    if digest.action_items:
        lines.append("# Key Action Items")
        lines.extend(f"- {item}" for item in digest.action_items)
        lines.append("")
    if digest.attendees:
        lines.append("# Meeting Attendees")
        lines.extend(f"- {name}" for name in digest.attendees)
        lines.append("")
    return "\n".join(lines)


class GammaClient:
    """Async client for the Gamma generations API.

    Args:
        api_key: Gamma API key. Empty disables presentation generation.
        theme_id: Optional theme for generated decks.
    """

    TIMEOUT = 30.0

    def __init__(self, api_key: str = "", theme_id: str = "") -> None:
        self._api_key = api_key
        self._theme_id = theme_id

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=GAMMA_API_URL,
            headers={"X-API-KEY": self._api_key, "Content-Type": "application/json"},
            timeout=self.TIMEOUT,
        )

    @_gamma_retry
    async def _generate(self, body: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post("/generations", json=body)
            response.raise_for_status()
            return response.json()

    async def create_presentation(self, digest: MeetingDigest) -> str | None:
        """Request a presentation and return its URL.

        Returns:
            The presentation URL, or None when no API key is configured or
            the API did not return one.

        Raises:
            PresentationError: The API call failed.
        """
        if not self.enabled:
            logger.info("presentation.skipped", reason="no_api_key")
            return None

        body: dict[str, Any] = {
            "inputText": build_presentation_content(digest),
            "textMode": "outline",
            "format": "presentation",
            "numCards": "auto",
            "cardSplit": "auto",
            "additionalInstructions": (
                "Use clear headings, bullet points, and professional formatting."
            ),
            "textOptions": {
                "amount": "detailed",
                "tone": "professional, actionable",
                "audience": "team members, stakeholders",
                "language": "en",
            },
        }
        if self._theme_id:
            body["themeId"] = self._theme_id

        try:
            data = await self._generate(body)
        except httpx.HTTPError as exc:
            raise PresentationError(f"Gamma generation failed: {exc}") from exc

        url = data.get("url") or data.get("webUrl")
        logger.info("presentation.created", generation_id=data.get("id"), url=url)
        return url
