"""Webhook API endpoints.

Provides:
- POST /webhook/{source}                        -- admit a delivery (Fathom)
- GET  /webhook/status/{delivery_id}            -- pipeline state of a delivery
- GET  /webhook/dead-letters                    -- failed deliveries awaiting replay
- POST /webhook/dead-letters/{delivery_id}/retry -- replay one failed delivery

The admission path (authenticate, validate, claim) completes before the
response; the pipeline itself runs on the Orchestrator's workers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.meeting_sync.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DeadLetterNotFoundError,
    DuplicateDeliveryError,
    PayloadValidationError,
    QueueFullError,
)
from src.meeting_sync.core.monitoring import webhook_deliveries_total
from src.meeting_sync.ingest.gateway import DELIVERY_ID_HEADER
from src.meeting_sync.pipeline.orchestrator import PipelineState

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_gateway(request: Request, source: str) -> Any:
    """Gateway for a webhook source, 404 for unknown sources."""
    gateways = getattr(request.app.state, "gateways", None)
    if gateways is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook gateway not initialized",
        )
    gateway = gateways.get(source)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown webhook source: {source}",
        )
    return gateway


def _get_orchestrator(request: Request) -> Any:
    """Retrieve Orchestrator from app.state, 503 if not available."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not initialized",
        )
    return orchestrator


def _get_delivery_store(request: Request) -> Any:
    """Retrieve DeliveryStore from app.state, 503 if not available."""
    store = getattr(request.app.state, "delivery_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery store not initialized",
        )
    return store


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/status/{delivery_id}")
async def delivery_status(delivery_id: str, request: Request) -> dict:
    """Last known pipeline state of a delivery."""
    store = _get_delivery_store(request)
    found = await store.get_status(delivery_id)
    if found is None:
        return {"deliveryId": delivery_id, "processed": False, "state": None, "timestamp": _now()}
    return {
        "deliveryId": delivery_id,
        "processed": found.processed,
        "state": found.state.value,
        "timestamp": found.timestamp.isoformat(),
    }


@router.get("/dead-letters")
async def list_dead_letters(request: Request) -> dict:
    """Summaries of dead-lettered deliveries, newest first."""
    orchestrator = _get_orchestrator(request)
    letters = await orchestrator.dead_letters.list_all()
    return {
        "count": len(letters),
        "deadLetters": [
            {
                "deliveryId": letter.delivery_id,
                "timestamp": letter.timestamp.isoformat(),
                "error": letter.error,
                "file": letter.file_name,
            }
            for letter in letters
        ],
    }


@router.post("/dead-letters/{delivery_id}/retry")
async def retry_dead_letter(delivery_id: str, request: Request):
    """Replay one dead-lettered delivery through the full pipeline."""
    orchestrator = _get_orchestrator(request)
    try:
        outcome = await orchestrator.retry(delivery_id)
    except DeadLetterNotFoundError as exc:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), deliveryId=delivery_id)
    except DuplicateDeliveryError:
        return _error(status.HTTP_409_CONFLICT, "Retry already in progress", deliveryId=delivery_id)
    except PayloadValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), details=exc.details)

    body = outcome.model_dump(mode="json")
    if outcome.state == PipelineState.FAILED:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body)
    return body


@router.post("/{source}")
async def receive_webhook(source: str, request: Request):
    """Admit one webhook delivery and hand it to the pipeline.

    Responds 200 on acceptance (``duplicate: true`` for a replayed id),
    401 on authentication failure, 400 on a malformed delivery, 503 when the
    pipeline is not initialized or its queue is full.
    """
    gateway = _get_gateway(request, source)
    # Resolve the pipeline before admission so an unready app never claims an id
    orchestrator = _get_orchestrator(request)
    delivery_store = _get_delivery_store(request)
    body = await request.body()
    header_delivery_id = request.headers.get(DELIVERY_ID_HEADER)

    try:
        delivery = await gateway.admit(request.headers, body)
    except DuplicateDeliveryError as exc:
        webhook_deliveries_total.labels(source=source, outcome="duplicate").inc()
        logger.info("webhook.duplicate_delivery", delivery_id=exc.delivery_id)
        return {"received": True, "duplicate": True, "deliveryId": exc.delivery_id, "timestamp": _now()}
    except AuthenticationError as exc:
        webhook_deliveries_total.labels(source=source, outcome="unauthorized").inc()
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))
    except PayloadValidationError as exc:
        webhook_deliveries_total.labels(source=source, outcome="invalid").inc()
        logger.warning("webhook.invalid_payload", delivery_id=header_delivery_id, errors=len(exc.details))
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), details=exc.details)
    except ConfigurationError:
        webhook_deliveries_total.labels(source=source, outcome="error").inc()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", deliveryId=header_delivery_id)
    except Exception:
        webhook_deliveries_total.labels(source=source, outcome="error").inc()
        logger.exception("webhook.admission_error", delivery_id=header_delivery_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", deliveryId=header_delivery_id)

    try:
        orchestrator.submit(delivery)
    except QueueFullError as exc:
        await delivery_store.release(delivery.delivery_id)
        webhook_deliveries_total.labels(source=source, outcome="queue_full").inc()
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), deliveryId=delivery.delivery_id)

    webhook_deliveries_total.labels(source=source, outcome="accepted").inc()
    return {"received": True, "deliveryId": delivery.delivery_id, "timestamp": _now()}
