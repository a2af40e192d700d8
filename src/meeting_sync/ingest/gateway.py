"""Admission gateway for inbound webhook deliveries.

Runs the synchronous part of a delivery's life, before the HTTP response:

1. Authenticate (HMAC-SHA256 signature over the raw body, or bearer token).
2. Validate the payload shape against MeetingEvent.
3. Claim the delivery id in the dedup store (atomic check-and-insert).

Shape validation happens before the claim so a malformed delivery never
burns its id. Only a fully admitted Delivery reaches the Orchestrator.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Mapping

import structlog
from pydantic import ValidationError

from src.meeting_sync.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DuplicateDeliveryError,
    PayloadValidationError,
)
from src.meeting_sync.ingest.dedup import DeliveryStore
from src.meeting_sync.ingest.schemas import AuthMethod, Delivery, MeetingEvent

logger = structlog.get_logger(__name__)

DELIVERY_ID_HEADER = "x-fathom-delivery-id"
SIGNATURE_HEADER = "x-fathom-signature"
TIMESTAMP_HEADER = "x-fathom-timestamp"
AUTHORIZATION_HEADER = "authorization"


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact body bytes."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of a received signature. Fails closed.

    Accepts the bare hex digest or the ``sha256=<hex>`` form.
    """
    try:
        provided = signature.strip()
        if provided.startswith("sha256="):
            provided = provided.split("=", maxsplit=1)[1].strip()
        if not provided:
            return False
        expected = compute_signature(body, secret)
        return hmac.compare_digest(expected.encode("ascii"), provided.encode("ascii"))
    except (TypeError, ValueError, UnicodeError):
        logger.warning("webhook.signature_check_error", exc_info=True)
        return False


def _normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


class Gateway:
    """Authenticates, validates, and deduplicates webhook deliveries.

    Args:
        store: Dedup store used for the atomic delivery-id claim.
        secret: Shared webhook secret.
        source: Name of the webhook source this gateway admits for.
    """

    def __init__(self, store: DeliveryStore, secret: str, source: str = "fathom") -> None:
        self._store = store
        self._secret = secret
        self.source = source

    def authenticate(self, headers: Mapping[str, str], body: bytes) -> AuthMethod:
        """Check the signature header, else the bearer header.

        Raises:
            ConfigurationError: No webhook secret configured.
            AuthenticationError: Neither header present, or the one present
                does not match.
        """
        if not self._secret:
            logger.error("webhook.secret_not_configured")
            raise ConfigurationError("Webhook secret is not configured")

        delivery_id = headers.get(DELIVERY_ID_HEADER)
        signature = headers.get(SIGNATURE_HEADER)
        authorization = headers.get(AUTHORIZATION_HEADER)

        if signature:
            if not verify_signature(body, signature, self._secret):
                logger.warning("webhook.invalid_signature", delivery_id=delivery_id)
                raise AuthenticationError("Invalid signature")
            return AuthMethod.SIGNATURE

        if authorization:
            expected = f"Bearer {self._secret}"
            if not hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8")):
                logger.warning("webhook.invalid_authorization", delivery_id=delivery_id)
                raise AuthenticationError("Invalid authorization")
            return AuthMethod.BEARER

        logger.warning("webhook.no_authentication", delivery_id=delivery_id)
        raise AuthenticationError("Authentication required")

    @staticmethod
    def parse_payload(body: bytes) -> tuple[dict, MeetingEvent]:
        """Decode the body and validate it as a MeetingEvent.

        Raises:
            PayloadValidationError: Body is not a JSON object or fails the
                schema; ``details`` lists the field errors.
        """
        try:
            raw = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PayloadValidationError("Invalid JSON body", [{"msg": str(exc)}]) from exc

        if not isinstance(raw, dict):
            raise PayloadValidationError("Payload must be a JSON object")

        try:
            event = MeetingEvent.model_validate(raw)
        except ValidationError as exc:
            details = exc.errors(include_url=False, include_context=False)
            raise PayloadValidationError("Invalid payload format", details) from exc
        return raw, event

    async def admit(self, headers: Mapping[str, str], body: bytes) -> Delivery:
        """Run the full admission path for one delivery.

        Args:
            headers: Request headers (any case).
            body: Exact request body bytes, as received.

        Returns:
            The admitted Delivery.

        Raises:
            ConfigurationError, AuthenticationError, PayloadValidationError,
            DuplicateDeliveryError.
        """
        normalized = _normalize_headers(headers)
        auth_method = self.authenticate(normalized, body)

        delivery_id = (normalized.get(DELIVERY_ID_HEADER) or "").strip()
        if not delivery_id:
            raise PayloadValidationError(
                "Missing delivery id header",
                [{"loc": ["headers", DELIVERY_ID_HEADER], "msg": "Field required"}],
            )

        raw, event = self.parse_payload(body)

        if not await self._store.claim(delivery_id):
            raise DuplicateDeliveryError(delivery_id)

        logger.info(
            "webhook.admitted",
            delivery_id=delivery_id,
            auth_method=auth_method.value,
            meeting_id=event.meeting.id,
            meeting_title=event.meeting.title,
            attendee_count=len(event.attendees),
        )
        return Delivery(
            delivery_id=delivery_id,
            raw_payload=raw,
            event=event,
            auth_method=auth_method,
            source=self.source,
        )
