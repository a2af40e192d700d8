"""HTTP tests for the webhook, status, dead-letter, health, and metrics routes.

The app is created without running its lifespan; app.state is populated
with in-memory doubles instead of Redis and a live worker pool.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from src.meeting_sync.core.exceptions import DeadLetterNotFoundError, DuplicateDeliveryError, QueueFullError
from src.meeting_sync.ingest.dedup import DeliveryState
from src.meeting_sync.ingest.gateway import Gateway
from src.meeting_sync.main import create_app
from src.meeting_sync.pipeline.dead_letters import DeadLetterStore
from src.meeting_sync.pipeline.orchestrator import PipelineOutcome, PipelineState
from tests.helpers import WEBHOOK_SECRET, InMemoryDeliveryStore, signed_headers


@pytest.fixture
def store() -> InMemoryDeliveryStore:
    return InMemoryDeliveryStore()


@pytest.fixture
def orchestrator(tmp_path) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.dead_letters = DeadLetterStore(tmp_path / "dead-letters")
    orchestrator.retry = AsyncMock()
    return orchestrator


@pytest.fixture
def app(store, orchestrator, tmp_path):
    app = create_app()
    app.state.gateways = {"fathom": Gateway(store, WEBHOOK_SECRET)}
    app.state.delivery_store = store
    app.state.orchestrator = orchestrator
    app.state.redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    app.state.document_root = tmp_path
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


# ── Admission ─────────────────────────────────────────────────────────────


class TestReceiveWebhook:
    """POST /webhook/{source} status mapping."""

    def test_valid_delivery_accepted_and_queued(self, client, orchestrator, store, sample_body):
        response = client.post("/webhook/fathom", content=sample_body, headers=signed_headers(sample_body, "d-1"))

        assert response.status_code == 200
        data = response.json()
        assert data["received"] is True
        assert data["deliveryId"] == "d-1"
        assert "duplicate" not in data
        orchestrator.submit.assert_called_once()
        assert orchestrator.submit.call_args.args[0].delivery_id == "d-1"
        assert store.states["d-1"] == DeliveryState.RECEIVED

    def test_duplicate_is_200_and_not_requeued(self, client, orchestrator, sample_body):
        headers = signed_headers(sample_body, "d-dup")
        client.post("/webhook/fathom", content=sample_body, headers=headers)
        response = client.post("/webhook/fathom", content=sample_body, headers=headers)

        assert response.status_code == 200
        assert response.json()["duplicate"] is True
        assert orchestrator.submit.call_count == 1

    def test_bad_signature_is_401(self, client, orchestrator, sample_body):
        headers = signed_headers(sample_body, "d-2", secret="wrong")
        response = client.post("/webhook/fathom", content=sample_body, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid signature"
        orchestrator.submit.assert_not_called()

    def test_malformed_payload_is_400_with_details(self, client, sample_payload):
        del sample_payload["meeting"]
        body = json.dumps(sample_payload).encode()
        response = client.post("/webhook/fathom", content=body, headers=signed_headers(body, "d-3"))

        assert response.status_code == 400
        assert response.json()["details"]

    def test_unknown_source_is_404(self, client, sample_body):
        response = client.post("/webhook/zoom", content=sample_body, headers=signed_headers(sample_body))
        assert response.status_code == 404

    def test_missing_secret_is_500(self, app, client, store, sample_body):
        app.state.gateways = {"fathom": Gateway(store, "")}
        response = client.post(
            "/webhook/fathom",
            content=sample_body,
            headers={"X-Fathom-Delivery-Id": "d-4", "Authorization": "Bearer anything"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "deliveryId": "d-4"}

    def test_queue_full_is_503_and_releases_claim(self, client, orchestrator, store, sample_body):
        orchestrator.submit.side_effect = QueueFullError("Pipeline queue is full")
        response = client.post("/webhook/fathom", content=sample_body, headers=signed_headers(sample_body, "d-5"))

        assert response.status_code == 503
        assert store.released == ["d-5"]
        assert "d-5" not in store.states

    def test_pipeline_not_ready_is_503_and_claims_nothing(self, app, client, store, sample_body):
        app.state.orchestrator = None
        response = client.post("/webhook/fathom", content=sample_body, headers=signed_headers(sample_body, "d-6"))

        assert response.status_code == 503
        assert store.states == {}

        app.state.orchestrator = MagicMock()
        retried = client.post("/webhook/fathom", content=sample_body, headers=signed_headers(sample_body, "d-6"))
        assert retried.status_code == 200
        assert "duplicate" not in retried.json()


# ── Status and Dead Letters ───────────────────────────────────────────────


class TestStatusAndDeadLetters:
    def test_status_of_known_and_unknown_delivery(self, client, store):
        store.states["d-10"] = DeliveryState.PROCESSED

        known = client.get("/webhook/status/d-10").json()
        unknown = client.get("/webhook/status/d-missing").json()

        assert known["processed"] is True
        assert known["state"] == "processed"
        assert unknown["processed"] is False
        assert unknown["state"] is None

    def test_list_dead_letters(self, client, orchestrator):
        asyncio.run(orchestrator.dead_letters.save("d-20", "UpstreamError: boom", {"event": "meeting.completed"}))

        data = client.get("/webhook/dead-letters").json()

        assert data["count"] == 1
        assert data["deadLetters"][0]["deliveryId"] == "d-20"
        assert data["deadLetters"][0]["error"] == "UpstreamError: boom"
        assert data["deadLetters"][0]["file"].startswith("d-20-")

    def test_retry_success(self, client, orchestrator):
        orchestrator.retry.return_value = PipelineOutcome(delivery_id="d-21-retry", state=PipelineState.COMPLETE)

        response = client.post("/webhook/dead-letters/d-21/retry")

        assert response.status_code == 200
        assert response.json()["state"] == "complete"
        orchestrator.retry.assert_awaited_once_with("d-21")

    def test_retry_failure_is_502(self, client, orchestrator):
        orchestrator.retry.return_value = PipelineOutcome(
            delivery_id="d-22-retry",
            state=PipelineState.FAILED,
            failed_at=PipelineState.CONTEXT_LOADED,
            error="UpstreamError: still down",
        )

        response = client.post("/webhook/dead-letters/d-22/retry")

        assert response.status_code == 502
        assert response.json()["failed_at"] == "context_loaded"

    def test_retry_unknown_is_404(self, client, orchestrator):
        orchestrator.retry.side_effect = DeadLetterNotFoundError("No dead letter for delivery nope")
        assert client.post("/webhook/dead-letters/nope/retry").status_code == 404

    def test_retry_in_progress_is_409(self, client, orchestrator):
        orchestrator.retry.side_effect = DuplicateDeliveryError("d-23-retry")
        response = client.post("/webhook/dead-letters/d-23/retry")

        assert response.status_code == 409
        assert response.json()["deliveryId"] == "d-23"


# ── Health and Metrics ────────────────────────────────────────────────────


class TestHealthAndMetrics:
    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_with_redis_and_tree(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["document_tree"] == "ok"

    def test_readiness_degraded_without_tree(self, app, client, tmp_path):
        app.state.document_root = tmp_path / "missing"
        response = client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_metrics_exposes_webhook_counter(self, client, sample_body):
        client.post("/webhook/fathom", content=sample_body, headers=signed_headers(sample_body, "d-30"))
        body = client.get("/metrics").text
        assert "webhook_deliveries_total" in body
