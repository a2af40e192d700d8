"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
lifespan wiring of the ingestion pipeline, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.meeting_sync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.meeting_sync.api.v1.router import router as v1_router
from src.meeting_sync.config import Settings, get_settings
from src.meeting_sync.context.cache import ContextCache
from src.meeting_sync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.meeting_sync.core.redis import close_redis, get_redis_pool
from src.meeting_sync.documents.git import GitRepository
from src.meeting_sync.documents.mutations import MutationEngine
from src.meeting_sync.ingest.dedup import RedisDeliveryStore
from src.meeting_sync.ingest.gateway import Gateway
from src.meeting_sync.pipeline.dead_letters import DeadLetterStore
from src.meeting_sync.pipeline.orchestrator import Orchestrator
from src.meeting_sync.processing.validator import OutputValidator
from src.meeting_sync.services.notifier import SlackNotifier
from src.meeting_sync.services.presentation import GammaClient
from src.meeting_sync.services.processor import MeetingProcessor


def build_orchestrator(settings: Settings, store: RedisDeliveryStore) -> Orchestrator:
    """Wire the pipeline components from settings."""
    git = GitRepository(
        path=Path(settings.OS_PATH),
        author_name=settings.GIT_AUTHOR_NAME,
        author_email=settings.GIT_AUTHOR_EMAIL,
    )
    return Orchestrator(
        context_cache=ContextCache(settings.document_root, ttl_seconds=settings.CONTEXT_TTL_SECONDS),
        processor=MeetingProcessor(
            model=settings.LLM_MODEL,
            api_key=settings.ANTHROPIC_API_KEY or None,
            max_tokens=settings.LLM_MAX_TOKENS,
            max_attempts=settings.LLM_MAX_RETRIES,
        ),
        validator=OutputValidator(root_marker=settings.TREE_ROOT_MARKER),
        engine=MutationEngine(
            root=settings.document_root,
            root_marker=settings.TREE_ROOT_MARKER,
            git=git,
            auto_commit=settings.GIT_AUTO_COMMIT,
            auto_push=settings.GIT_AUTO_PUSH,
        ),
        dead_letters=DeadLetterStore(Path(settings.DEAD_LETTER_DIR)),
        store=store,
        notifier=SlackNotifier(settings.SLACK_WEBHOOK_URL, settings.SLACK_CHANNEL),
        presenter=GammaClient(settings.GAMMA_API_KEY, settings.GAMMA_THEME_ID),
        worker_count=settings.WORKER_COUNT,
        queue_max_size=settings.QUEUE_MAX_SIZE,
        processor_timeout=settings.PROCESSOR_TIMEOUT_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire and start the pipeline, drain it on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if not settings.FATHOM_WEBHOOK_SECRET:
        log.warning("startup.webhook_secret_missing", hint="webhook requests will fail with 500")
    if not settings.document_root.is_dir():
        log.warning("startup.document_root_missing", document_root=str(settings.document_root))

    redis = get_redis_pool()
    store = RedisDeliveryStore(redis, ttl_seconds=settings.DEDUP_TTL_SECONDS)
    orchestrator = build_orchestrator(settings, store)

    app.state.redis = redis
    app.state.document_root = settings.document_root
    app.state.delivery_store = store
    app.state.gateways = {"fathom": Gateway(store, settings.FATHOM_WEBHOOK_SECRET, source="fathom")}
    app.state.orchestrator = orchestrator

    await orchestrator.start()
    log.info(
        "startup.complete",
        environment=settings.ENVIRONMENT.value,
        document_root=str(settings.document_root),
        workers=settings.WORKER_COUNT,
        auto_commit=settings.GIT_AUTO_COMMIT,
        auto_push=settings.GIT_AUTO_PUSH,
    )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await orchestrator.shutdown()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Meeting Sync",
        version="0.1.0",
        description="Fathom meeting webhooks processed into a git-backed markdown knowledge base",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
