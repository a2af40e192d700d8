"""Orchestrator -- runs admitted deliveries through the pipeline.

Per-delivery state machine::

    received -> context_loaded -> processed -> validated -> mutated -> complete
                      \\______________ any failure ______________/-> failed

Admitted deliveries go onto a bounded queue drained by a fixed pool of
worker tasks. Any failure after admission is written to the dead-letter
store and marked ``failed`` on the delivery status; it is never surfaced to
the webhook caller. Presentation and notification run as tracked
background tasks whose failures are logged and otherwise ignored.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Protocol

import structlog
from pydantic import BaseModel, Field, ValidationError

from src.meeting_sync.context.cache import ContextCache
from src.meeting_sync.context.schemas import ContextSnapshot
from src.meeting_sync.core.exceptions import (
    DuplicateDeliveryError,
    MutationError,
    PayloadValidationError,
    QueueFullError,
    UpstreamError,
)
from src.meeting_sync.core.monitoring import pipeline_duration_seconds, pipeline_runs_total
from src.meeting_sync.documents.mutations import BatchMeta, MutationBatchResult, MutationEngine
from src.meeting_sync.ingest.dedup import DeliveryState, DeliveryStore
from src.meeting_sync.ingest.schemas import AuthMethod, Delivery, MeetingEvent
from src.meeting_sync.pipeline.dead_letters import DeadLetterStore
from src.meeting_sync.processing.validator import OutputValidator
from src.meeting_sync.services.models import MeetingDigest
from src.meeting_sync.services.notifier import SlackNotifier
from src.meeting_sync.services.presentation import GammaClient

logger = structlog.get_logger(__name__)

RETRY_SUFFIX = "-retry"


class PipelineState(str, Enum):
    RECEIVED = "received"
    CONTEXT_LOADED = "context_loaded"
    PROCESSED = "processed"
    VALIDATED = "validated"
    MUTATED = "mutated"
    NOTIFIED = "notified"
    COMPLETE = "complete"
    FAILED = "failed"


class PipelineOutcome(BaseModel):
    delivery_id: str
    state: PipelineState
    failed_at: PipelineState | None = None
    batch: MutationBatchResult | None = None
    warnings: list[str] = Field(default_factory=list)
    presentation_url: str | None = None
    error: str | None = None


class MeetingTextProcessor(Protocol):
    """The AI collaborator as the pipeline sees it: meeting in, text out."""

    async def process(self, event: MeetingEvent, context: ContextSnapshot) -> str:
        ...


class Orchestrator:
    """Owns the worker pool, failure policy, and side-effect tasks.

    Args:
        context_cache: Reference-data cache.
        processor: AI collaborator.
        validator: Output validator.
        engine: Mutation engine for the document tree.
        dead_letters: Store for failed deliveries.
        store: Delivery status store (shared with the gateway).
        notifier: Optional chat notifier.
        presenter: Optional presentation client.
        worker_count: Concurrent pipeline workers.
        queue_max_size: Pending deliveries before submit() refuses.
        processor_timeout: Deadline for one AI call, in seconds.
    """

    def __init__(
        self,
        *,
        context_cache: ContextCache,
        processor: MeetingTextProcessor,
        validator: OutputValidator,
        engine: MutationEngine,
        dead_letters: DeadLetterStore,
        store: DeliveryStore,
        notifier: SlackNotifier | None = None,
        presenter: GammaClient | None = None,
        worker_count: int = 4,
        queue_max_size: int = 100,
        processor_timeout: float = 120.0,
    ) -> None:
        self._context = context_cache
        self._processor = processor
        self._validator = validator
        self._engine = engine
        self._dead_letters = dead_letters
        self._store = store
        self._notifier = notifier
        self._presenter = presenter
        self._worker_count = worker_count
        self._processor_timeout = processor_timeout
        self._queue: asyncio.Queue[Delivery] = asyncio.Queue(maxsize=queue_max_size)
        self._workers: list[asyncio.Task[None]] = []
        self._side_effects: set[asyncio.Task[None]] = set()

    @property
    def dead_letters(self) -> DeadLetterStore:
        return self._dead_letters

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"pipeline-worker-{n}")
            for n in range(self._worker_count)
        ]
        logger.info("orchestrator.started", workers=self._worker_count)

    async def shutdown(self, drain_timeout: float = 30.0) -> None:
        """Drain the queue (bounded), stop workers, await side effects."""
        if self._workers:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning("orchestrator.drain_timeout", pending=self._queue.qsize())
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []

        if self._side_effects:
            await asyncio.gather(*self._side_effects, return_exceptions=True)
        logger.info("orchestrator.stopped")

    def submit(self, delivery: Delivery) -> None:
        """Enqueue an admitted delivery.

        Raises:
            QueueFullError: The queue is at capacity.
        """
        try:
            self._queue.put_nowait(delivery)
        except asyncio.QueueFull as exc:
            logger.warning("orchestrator.queue_full", delivery_id=delivery.delivery_id)
            raise QueueFullError("Pipeline queue is full") from exc
        logger.info("orchestrator.submitted", delivery_id=delivery.delivery_id, pending=self._queue.qsize())

    async def _worker(self, number: int) -> None:
        while True:
            delivery = await self._queue.get()
            try:
                await self.process(delivery)
            except Exception:
                logger.exception("orchestrator.worker_error", worker=number, delivery_id=delivery.delivery_id)
            finally:
                self._queue.task_done()

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def _mark(self, delivery_id: str, state: DeliveryState) -> None:
        try:
            await self._store.set_state(delivery_id, state)
        except Exception as exc:
            logger.warning("orchestrator.status_update_failed", delivery_id=delivery_id, state=state.value, error=str(exc))

    async def _process_with_deadline(self, event: MeetingEvent, context: ContextSnapshot) -> str:
        try:
            return await asyncio.wait_for(
                self._processor.process(event, context),
                timeout=self._processor_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError(f"AI processor timed out after {self._processor_timeout}s") from exc

    async def process(
        self,
        delivery: Delivery,
        *,
        await_side_effects: bool = False,
        dead_letter: bool = True,
    ) -> PipelineOutcome:
        """Run one delivery through the pipeline. Never raises for pipeline errors.

        Args:
            delivery: Admitted delivery.
            await_side_effects: Wait for presentation/notification before returning.
            dead_letter: Persist a dead letter on failure.
        """
        log = logger.bind(delivery_id=delivery.delivery_id)
        outcome = PipelineOutcome(delivery_id=delivery.delivery_id, state=PipelineState.RECEIVED)
        start = time.perf_counter()
        await self._mark(delivery.delivery_id, DeliveryState.PROCESSING)
        log.info("pipeline.started", meeting=delivery.event.meeting.title)

        try:
            context = await self._context.load()
            outcome.state = PipelineState.CONTEXT_LOADED

            raw_text = await self._process_with_deadline(delivery.event, context)
            outcome.state = PipelineState.PROCESSED

            validated = self._validator.validate(raw_text)
            result = validated.result
            outcome.warnings = validated.warnings
            outcome.state = PipelineState.VALIDATED

            meta = BatchMeta(
                title=delivery.event.meeting.title,
                meeting_type=result.classification.type.value,
                action_item_count=len(result.actionItems),
            )
            outcome.batch = await self._engine.apply(result.fileUpdates, meta)
            outcome.state = PipelineState.MUTATED
            self._context.invalidate()
        except Exception as exc:
            if isinstance(exc, MutationError) and exc.batch is not None:
                outcome.batch = exc.batch
            outcome.failed_at = outcome.state
            outcome.state = PipelineState.FAILED
            outcome.error = f"{type(exc).__name__}: {exc}"
            log.error(
                "pipeline.failed",
                failed_at=outcome.failed_at.value,
                error=outcome.error,
            )
            if dead_letter:
                try:
                    await self._dead_letters.save(delivery.delivery_id, outcome.error, delivery.raw_payload)
                except OSError as save_exc:
                    log.critical("pipeline.dead_letter_write_failed", error=str(save_exc))
            await self._mark(delivery.delivery_id, DeliveryState.FAILED)
            pipeline_runs_total.labels(state=PipelineState.FAILED.value).inc()
            pipeline_duration_seconds.observe(time.perf_counter() - start)
            return outcome

        await self._mark(delivery.delivery_id, DeliveryState.PROCESSED)
        digest = MeetingDigest.from_result(delivery.event, result)
        task = asyncio.create_task(self._publish(delivery.delivery_id, digest, outcome))
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)
        if await_side_effects:
            await task

        outcome.state = PipelineState.COMPLETE
        pipeline_runs_total.labels(state=PipelineState.COMPLETE.value).inc()
        pipeline_duration_seconds.observe(time.perf_counter() - start)
        log.info(
            "pipeline.complete",
            files=len(outcome.batch.applied) if outcome.batch else 0,
            commit=outcome.batch.commit.value if outcome.batch else None,
            warnings=len(outcome.warnings),
        )
        return outcome

    async def _publish(self, delivery_id: str, digest: MeetingDigest, outcome: PipelineOutcome) -> None:
        """Presentation, then notification. Failures are logged only."""
        log = logger.bind(delivery_id=delivery_id)
        if self._presenter is not None:
            try:
                digest.presentation_url = await self._presenter.create_presentation(digest)
                outcome.presentation_url = digest.presentation_url
            except Exception as exc:
                log.warning("pipeline.presentation_failed", error=str(exc))

        if self._notifier is not None:
            try:
                if await self._notifier.notify(digest):
                    log.info("pipeline.notified", state=PipelineState.NOTIFIED.value)
            except Exception as exc:
                log.warning("pipeline.notification_failed", error=str(exc))

    # ── Replay ───────────────────────────────────────────────────────────────

    async def retry(self, delivery_id: str) -> PipelineOutcome:
        """Re-run a dead-lettered delivery under ``<delivery_id>-retry``.

        The replay id is claimed in the delivery store for the duration of
        the rerun and released again unless it completes. The dead letter is
        removed only when the rerun completes.

        Raises:
            DeadLetterNotFoundError: No dead letter for ``delivery_id``.
            PayloadValidationError: The stored payload no longer validates.
            DuplicateDeliveryError: A retry of ``delivery_id`` is already running.
        """
        letter = await self._dead_letters.get(delivery_id)
        try:
            event = MeetingEvent.model_validate(letter.payload)
        except ValidationError as exc:
            raise PayloadValidationError(
                "Dead-letter payload is invalid",
                details=exc.errors(include_url=False, include_context=False),
            ) from exc

        replay = Delivery(
            delivery_id=f"{delivery_id}{RETRY_SUFFIX}",
            raw_payload=letter.payload,
            event=event,
            auth_method=AuthMethod.REPLAY,
        )
        if not await self._store.claim(replay.delivery_id):
            logger.warning("pipeline.retry_in_progress", delivery_id=delivery_id)
            raise DuplicateDeliveryError(replay.delivery_id)

        logger.info("pipeline.retrying", delivery_id=delivery_id, replay_id=replay.delivery_id)
        completed = False
        try:
            outcome = await self.process(replay, await_side_effects=True, dead_letter=False)
            completed = outcome.state == PipelineState.COMPLETE
        finally:
            if not completed:
                await self._store.release(replay.delivery_id)

        if completed:
            await self._dead_letters.delete(delivery_id)
            await self._mark(delivery_id, DeliveryState.PROCESSED)
        return outcome
