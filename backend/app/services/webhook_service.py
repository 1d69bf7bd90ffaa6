"""Webhook delivery service for forwarding payment request and invoice events."""

import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import session_scope
from app.core.events import EventAggregator, InvoiceEvent, PaymentRequestUpdated, Subscription
from app.models.webhook import Webhook
from app.repositories.payment_request_repository import parse_payment_request_order_id
from app.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from app.repositories.webhook_repository import WebhookRepository

logger = logging.getLogger(__name__)

PAYMENT_REQUEST_UPDATED = "payment_request.updated"

# Supported webhook event types
WEBHOOK_EVENT_TYPES = [
    PAYMENT_REQUEST_UPDATED,
    "invoice.created",
    "invoice.received_payment",
    "invoice.paid_in_full",
    "invoice.expired",
    "invoice.confirmed",
    "invoice.completed",
    "invoice.marked_invalid",
]


def generate_hmac_signature(payload_bytes: bytes, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a webhook payload.

    Args:
        payload_bytes: The raw payload bytes to sign.
        secret: The secret key for HMAC generation.

    Returns:
        Hex-encoded HMAC-SHA256 signature.
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload_bytes,
        hashlib.sha256,
    ).hexdigest()


class WebhookService:
    """Service for webhook delivery and management."""

    def __init__(self, db: Session):
        self.db = db
        self.endpoint_repo = WebhookEndpointRepository(db)
        self.webhook_repo = WebhookRepository(db)

    def send_webhook(
        self,
        store_id: UUID,
        webhook_type: str,
        object_type: str | None = None,
        object_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> list[Webhook]:
        """Create pending webhook records for every active endpoint of a store.

        Args:
            store_id: Store whose endpoints receive the event.
            webhook_type: Event type (e.g., "invoice.created").
            object_type: Type of the resource that triggered the event.
            object_id: ID of the resource that triggered the event.
            payload: Full event payload to deliver.

        Returns:
            List of created Webhook records.
        """
        if payload is None:
            payload = {}

        webhooks: list[Webhook] = []
        for endpoint in self.endpoint_repo.get_active_for_store(store_id):
            webhook = self.webhook_repo.create(
                webhook_endpoint_id=endpoint.id,  # type: ignore[arg-type]
                webhook_type=webhook_type,
                object_type=object_type,
                object_id=object_id,
                payload=payload,
            )
            webhooks.append(webhook)

        return webhooks

    def deliver_webhook(self, webhook_id: UUID) -> bool:
        """Deliver a webhook to its endpoint.

        Signs the JSON payload, POSTs it and records the outcome on the
        webhook row.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        webhook = self.webhook_repo.get_by_id(webhook_id)
        if not webhook:
            logger.error("Webhook %s not found", webhook_id)
            return False

        endpoint = self.endpoint_repo.get_by_id(webhook.webhook_endpoint_id)  # type: ignore[arg-type]
        if not endpoint:
            logger.error(
                "Endpoint %s not found for webhook %s",
                webhook.webhook_endpoint_id,
                webhook_id,
            )
            self.webhook_repo.mark_failed(webhook, response="Endpoint not found")
            return False

        payload_bytes = json.dumps(webhook.payload, default=str).encode("utf-8")
        signature = generate_hmac_signature(payload_bytes, settings.webhook_secret)

        headers = {
            "Content-Type": "application/json",
            "X-Payreq-Signature": signature,
            "X-Payreq-Signature-Algorithm": str(endpoint.signature_algo),
            "X-Payreq-Webhook-Id": str(webhook.id),
            "X-Payreq-Event": str(webhook.webhook_type),
        }

        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.post(str(endpoint.url), content=payload_bytes, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery failed for %s: %s", webhook_id, exc)
            self.webhook_repo.mark_failed(webhook, response=str(exc)[:1000])
            return False

        if 200 <= resp.status_code < 300:
            self.webhook_repo.mark_succeeded(webhook, resp.status_code)
            return True

        logger.warning(
            "Webhook %s rejected by %s with status %s",
            webhook_id,
            endpoint.url,
            resp.status_code,
        )
        self.webhook_repo.mark_failed(
            webhook,
            http_status=resp.status_code,
            response=resp.text[:1000] if resp.text else None,
        )
        return False

    def deliver_pending_webhooks(self) -> int:
        """Attempt delivery of every pending webhook. Returns the number delivered."""
        delivered = 0
        for webhook in self.webhook_repo.get_pending():
            if self.deliver_webhook(webhook.id):  # type: ignore[arg-type]
                delivered += 1
        return delivered

    def retry_failed_webhooks(self) -> int:
        """Retry failed webhooks with exponential backoff.

        Finds all failed webhooks eligible for retry (retries < max_retries)
        and re-delivers those whose backoff period has elapsed.
        Backoff: 2^retries minutes.

        Returns:
            Number of webhooks retried.
        """
        failed_webhooks = self.webhook_repo.get_failed_for_retry()
        retried_count = 0
        now = datetime.now(UTC)

        for webhook in failed_webhooks:
            backoff_minutes = 2 ** int(webhook.retries)
            if webhook.last_retried_at:
                next_retry_at = webhook.last_retried_at.replace(tzinfo=UTC) + timedelta(
                    minutes=backoff_minutes
                )
                if now < next_retry_at:
                    continue

            self.webhook_repo.increment_retry(webhook)
            self.deliver_webhook(webhook.id)  # type: ignore[arg-type]
            retried_count += 1

        return retried_count


def forward_payment_request_updated(event: PaymentRequestUpdated) -> None:
    with session_scope() as db:
        WebhookService(db).send_webhook(
            store_id=event.store_id,
            webhook_type=PAYMENT_REQUEST_UPDATED,
            object_type="payment_request",
            object_id=event.payment_request_id,
            payload={"type": PAYMENT_REQUEST_UPDATED, "payment_request": event.data},
        )


def forward_invoice_event(event: InvoiceEvent) -> None:
    payload: dict[str, Any] = {
        "type": event.name,
        "event_code": int(event.event_code),
        "invoice_id": str(event.invoice_id),
        "store_id": str(event.store_id),
        "order_id": event.order_id,
    }
    payment_request_id = parse_payment_request_order_id(event.order_id)
    if payment_request_id is not None:
        payload["payment_request_id"] = str(payment_request_id)

    with session_scope() as db:
        WebhookService(db).send_webhook(
            store_id=event.store_id,
            webhook_type=event.name,
            object_type="invoice",
            object_id=event.invoice_id,
            payload=payload,
        )


def register_webhook_forwarding(aggregator: EventAggregator) -> list[Subscription]:
    """Subscribe the webhook forwarders to ``aggregator``."""
    return [
        aggregator.subscribe(PaymentRequestUpdated, forward_payment_request_updated),
        aggregator.subscribe(InvoiceEvent, forward_invoice_event),
    ]
