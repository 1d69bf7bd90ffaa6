"""Webhook repository for data access."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.webhook import Webhook


class WebhookRepository:
    """Repository for Webhook model."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        webhook_endpoint_id: UUID,
        webhook_type: str,
        payload: dict[str, Any],
        object_type: str | None = None,
        object_id: UUID | None = None,
    ) -> Webhook:
        """Create a new pending webhook record."""
        webhook = Webhook(
            webhook_endpoint_id=webhook_endpoint_id,
            webhook_type=webhook_type,
            object_type=object_type,
            object_id=object_id,
            payload=payload,
        )
        self.db.add(webhook)
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def get_by_id(self, webhook_id: UUID) -> Webhook | None:
        return self.db.query(Webhook).filter(Webhook.id == webhook_id).first()

    def get_by_endpoint(self, endpoint_id: UUID) -> list[Webhook]:
        return (
            self.db.query(Webhook)
            .filter(Webhook.webhook_endpoint_id == endpoint_id)
            .order_by(Webhook.created_at.asc())
            .all()
        )

    def get_pending(self) -> list[Webhook]:
        return (
            self.db.query(Webhook)
            .filter(Webhook.status == "pending")
            .order_by(Webhook.created_at.asc())
            .all()
        )

    def get_failed_for_retry(self) -> list[Webhook]:
        """Get failed webhooks eligible for retry (retries < max_retries)."""
        return (
            self.db.query(Webhook)
            .filter(
                Webhook.status == "failed",
                Webhook.retries < Webhook.max_retries,
            )
            .order_by(Webhook.created_at.asc())
            .all()
        )

    def mark_succeeded(self, webhook: Webhook, http_status: int) -> Webhook:
        webhook.status = "succeeded"  # type: ignore[assignment]
        webhook.http_status = http_status  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def mark_failed(
        self,
        webhook: Webhook,
        http_status: int | None = None,
        response: str | None = None,
    ) -> Webhook:
        webhook.status = "failed"  # type: ignore[assignment]
        webhook.http_status = http_status  # type: ignore[assignment]
        webhook.response = response  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def increment_retry(self, webhook: Webhook) -> Webhook:
        webhook.retries = int(webhook.retries) + 1  # type: ignore[assignment]
        webhook.last_retried_at = datetime.now(UTC)  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(webhook)
        return webhook
