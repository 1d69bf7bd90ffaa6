"""Invoice API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.core.events import EventAggregator, get_event_aggregator
from app.models.invoice import Invoice
from app.repositories.store_repository import StoreRepository
from app.schemas.invoice import InvoicePaymentCreate, InvoicePaymentResponse, InvoiceResponse
from app.services.invoice_service import InvoiceService

router = APIRouter()


def _invoice_response(invoice: Invoice, service: InvoiceService) -> InvoiceResponse:
    invoice_id: UUID = invoice.id  # type: ignore[assignment]
    payments = service.get_payments([invoice_id]).get(invoice_id, [])
    resp = InvoiceResponse.model_validate(invoice)
    resp.payments = [InvoicePaymentResponse.model_validate(p) for p in payments]
    return resp


def _get_member_invoice(service: InvoiceService, invoice_id: UUID, user_id: UUID) -> Invoice:
    invoice = service.get_invoice(invoice_id)
    if not invoice or not StoreRepository(service.db).user_has_access(
        invoice.store_id,  # type: ignore[arg-type]
        user_id,
    ):
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice",
    responses={404: {"description": "Invoice not found"}},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceResponse:
    """Checkout view of an invoice."""
    service = InvoiceService(db)
    invoice = service.get_invoice(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return _invoice_response(invoice, service)


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceResponse,
    summary="Record a payment",
    responses={
        400: {"description": "Invoice cannot receive payments"},
        401: {"description": "Unauthorized"},
        404: {"description": "Invoice not found"},
    },
)
async def record_payment(
    invoice_id: UUID,
    data: InvoicePaymentCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    events: EventAggregator = Depends(get_event_aggregator),
) -> InvoiceResponse:
    """Record a payment received for an invoice."""
    service = InvoiceService(db, events)
    _get_member_invoice(service, invoice_id, user_id)
    try:
        invoice = service.record_payment(invoice_id, data.amount, data.reference)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return _invoice_response(invoice, service)


@router.post(
    "/{invoice_id}/invalidate",
    response_model=InvoiceResponse,
    summary="Mark invoice invalid",
    responses={
        400: {"description": "Invoice cannot be invalidated"},
        401: {"description": "Unauthorized"},
        404: {"description": "Invoice not found"},
    },
)
async def invalidate_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    events: EventAggregator = Depends(get_event_aggregator),
) -> InvoiceResponse:
    service = InvoiceService(db, events)
    _get_member_invoice(service, invoice_id, user_id)
    try:
        invoice = service.mark_invalid(invoice_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return _invoice_response(invoice, service)
