"""Webhook Endpoint API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.webhook import Webhook
from app.models.webhook_endpoint import WebhookEndpoint
from app.repositories.store_repository import StoreRepository
from app.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from app.repositories.webhook_repository import WebhookRepository
from app.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointResponse,
    WebhookResponse,
)

router = APIRouter()


@router.post(
    "/",
    response_model=WebhookEndpointResponse,
    status_code=201,
    summary="Create webhook endpoint",
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Store not found"},
        422: {"description": "Validation error"},
    },
)
async def create_webhook_endpoint(
    data: WebhookEndpointCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> WebhookEndpoint:
    """Create a new webhook endpoint for one of the caller's stores."""
    if not StoreRepository(db).user_has_access(data.store_id, user_id):
        raise HTTPException(status_code=404, detail="Store not found")
    return WebhookEndpointRepository(db).create(data)


@router.get(
    "/",
    response_model=list[WebhookEndpointResponse],
    summary="List webhook endpoints",
    responses={401: {"description": "Unauthorized"}},
)
async def list_webhook_endpoints(
    response: Response,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[WebhookEndpoint]:
    """List the webhook endpoints of the caller's stores."""
    endpoints = WebhookEndpointRepository(db).get_by_user(user_id)
    response.headers["X-Total-Count"] = str(len(endpoints))
    return endpoints


@router.get(
    "/{endpoint_id}/webhooks",
    response_model=list[WebhookResponse],
    summary="List deliveries of a webhook endpoint",
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Webhook endpoint not found"},
    },
)
async def list_endpoint_webhooks(
    endpoint_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[Webhook]:
    endpoint = WebhookEndpointRepository(db).get_by_id(endpoint_id, user_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")
    return WebhookRepository(db).get_by_endpoint(endpoint_id)


@router.delete(
    "/{endpoint_id}",
    status_code=204,
    summary="Delete webhook endpoint",
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Webhook endpoint not found"},
    },
)
async def delete_webhook_endpoint(
    endpoint_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> None:
    """Delete a webhook endpoint."""
    repo = WebhookEndpointRepository(db)
    endpoint = repo.get_by_id(endpoint_id, user_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")
    repo.delete(endpoint)
