"""WebhookEndpoint repository for data access."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.models.store_user import StoreUser
from app.models.webhook_endpoint import WebhookEndpoint
from app.schemas.webhook import WebhookEndpointCreate


class WebhookEndpointRepository:
    """Repository for WebhookEndpoint model."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: WebhookEndpointCreate) -> WebhookEndpoint:
        endpoint = WebhookEndpoint(
            store_id=data.store_id,
            url=data.url,
            signature_algo=data.signature_algo,
        )
        self.db.add(endpoint)
        self.db.commit()
        self.db.refresh(endpoint)
        return endpoint

    def get_by_id(self, endpoint_id: UUID, user_id: UUID | None = None) -> WebhookEndpoint | None:
        query = self.db.query(WebhookEndpoint).filter(WebhookEndpoint.id == endpoint_id)
        if user_id is not None:
            query = query.join(StoreUser, StoreUser.store_id == WebhookEndpoint.store_id).filter(
                StoreUser.user_id == user_id
            )
        return query.first()

    def get_by_user(self, user_id: UUID) -> list[WebhookEndpoint]:
        """Get the endpoints of every store the user is a member of."""
        return (
            self.db.query(WebhookEndpoint)
            .join(StoreUser, StoreUser.store_id == WebhookEndpoint.store_id)
            .filter(StoreUser.user_id == user_id)
            .order_by(WebhookEndpoint.created_at.desc())
            .all()
        )

    def get_active_for_store(self, store_id: UUID) -> list[WebhookEndpoint]:
        return (
            self.db.query(WebhookEndpoint)
            .filter(
                WebhookEndpoint.store_id == store_id,
                WebhookEndpoint.status == "active",
            )
            .all()
        )

    def delete(self, endpoint: WebhookEndpoint) -> None:
        self.db.delete(endpoint)
        self.db.commit()
