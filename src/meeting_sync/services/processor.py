"""MeetingProcessor -- the AI collaborator adapter.

Builds the meeting prompt, calls the model through LiteLLM with bounded
retries on transient provider errors, and returns the raw response text.
Parsing and validation are the OutputValidator's job.
"""

from __future__ import annotations

from datetime import date

import litellm
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.meeting_sync.context.schemas import ContextSnapshot
from src.meeting_sync.core.exceptions import UpstreamError
from src.meeting_sync.core.monitoring import track_llm_call
from src.meeting_sync.ingest.schemas import MeetingEvent
from src.meeting_sync.processing.prompts import build_meeting_prompt

logger = structlog.get_logger(__name__)

TRANSIENT_LLM_ERRORS: tuple[type[Exception], ...] = (
    litellm.exceptions.APIConnectionError,
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.InternalServerError,
    litellm.exceptions.Timeout,
)


class MeetingProcessor:
    """Turns a meeting plus reference context into raw model output.

    Args:
        model: LiteLLM model string (``provider/model``).
        api_key: Provider API key; None lets LiteLLM read its own env vars.
        max_tokens: Completion token cap.
        max_attempts: Attempts on transient provider errors.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        max_tokens: int = 8192,
        max_attempts: int = 3,
        temperature: float = 0.3,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._max_tokens = max_tokens
        self._max_attempts = max_attempts
        self._temperature = temperature

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        async with track_llm_call(self._model) as tracker:
            response = await litellm.acompletion(
                model=self._model,
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                api_key=self._api_key,
            )
            usage = getattr(response, "usage", None)
            if usage:
                tracker["prompt_tokens"] = usage.prompt_tokens
                tracker["completion_tokens"] = usage.completion_tokens
        return response.choices[0].message.content or ""

    async def process(
        self,
        event: MeetingEvent,
        context: ContextSnapshot,
        today: date | None = None,
    ) -> str:
        """Run the model over one meeting.

        Raises:
            UpstreamError: Provider error after retries, or an empty response.
        """
        messages = build_meeting_prompt(event, context, today=today)
        logger.info(
            "processor.calling_model",
            model=self._model,
            meeting_id=event.meeting.id,
            transcript_chars=len(event.transcript_text),
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(TRANSIENT_LLM_ERRORS),
                reraise=True,
            ):
                with attempt:
                    text = await self._complete(messages)
        except Exception as exc:
            logger.error(
                "processor.model_failed",
                model=self._model,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise UpstreamError(f"LLM call failed: {exc}") from exc

        if not text.strip():
            raise UpstreamError("LLM returned an empty response")

        logger.info("processor.model_responded", model=self._model, response_chars=len(text))
        return text
