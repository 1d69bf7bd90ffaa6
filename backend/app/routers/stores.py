"""Store API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.store import Store
from app.repositories.store_repository import StoreRepository
from app.schemas.store import StoreCreate, StoreResponse
from app.services.currency_service import get_currency_data

router = APIRouter()


@router.post(
    "/",
    response_model=StoreResponse,
    status_code=201,
    summary="Create store",
    responses={
        400: {"description": "Unsupported default currency"},
        401: {"description": "Unauthorized"},
    },
)
async def create_store(
    data: StoreCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> Store:
    """Create a store owned by the caller."""
    if get_currency_data(data.default_currency) is None:
        raise HTTPException(status_code=400, detail="Unsupported default currency")
    return StoreRepository(db).create(data, owner_user_id=user_id)


@router.get(
    "/",
    response_model=list[StoreResponse],
    summary="List stores",
    responses={401: {"description": "Unauthorized"}},
)
async def list_stores(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[Store]:
    """List the stores the caller is a member of."""
    return StoreRepository(db).get_by_user(user_id)
