"""PaymentRequest API endpoints."""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.core.events import EventAggregator, get_event_aggregator
from app.models.shared import utc_now
from app.schemas.payment_request import (
    ArchiveToggleResponse,
    PaymentRequestEditModel,
    PaymentRequestListResponse,
    PaymentRequestResponse,
    PaymentRequestUpdate,
    PaymentRequestViewResponse,
)
from app.services.invoice_service import PaymentProcessingError
from app.services.payment_request_service import (
    CancelRejectedError,
    NoStoreError,
    OperationTimeoutError,
    PaymentRequestNotFoundError,
    PaymentRequestService,
    PaymentRequestValidationError,
    PayRejectedError,
    PayRejection,
)

router = APIRouter()

# Rejections that redirect-capable callers are sent back to the view for
_VIEW_REDIRECT_REJECTIONS = {
    PayRejection.ARCHIVED,
    PayRejection.ALREADY_SETTLED,
    PayRejection.EXPIRED,
}


def _view_redirect(request: Request, request_id: UUID) -> RedirectResponse:
    return RedirectResponse(
        url=str(request.url_for("view_payment_request", request_id=request_id)),
        status_code=303,
    )


@router.get(
    "/",
    response_model=PaymentRequestListResponse,
    summary="List payment requests",
    responses={401: {"description": "Unauthorized"}},
)
async def list_payment_requests(
    response: Response,
    skip: int = Query(default=0, ge=0),
    count: int = Query(default=50, ge=1, le=1000),
    include_archived: bool = Query(default=False, alias="includeArchived"),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> PaymentRequestListResponse:
    """List the payment requests of the caller's stores, newest first."""
    service = PaymentRequestService(db)
    items, total = service.list_payment_requests(
        user_id,
        skip=skip,
        count=count,
        include_archived=include_archived,
    )
    response.headers["X-Total-Count"] = str(total)
    return PaymentRequestListResponse(
        items=[PaymentRequestResponse.from_record(pr) for pr in items],
        total=total,
        skip=skip,
        count=count,
        include_archived=include_archived,
    )


@router.get(
    "/edit",
    response_model=PaymentRequestEditModel,
    summary="Get a blank payment request form",
    responses={
        400: {"description": "The user has no store"},
        401: {"description": "Unauthorized"},
    },
)
@router.get(
    "/edit/{request_id}",
    response_model=PaymentRequestEditModel,
    summary="Get the edit form of a payment request",
    responses={
        400: {"description": "The user has no store"},
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
    },
)
async def get_edit_model(
    request_id: UUID | None = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> PaymentRequestEditModel:
    service = PaymentRequestService(db)
    try:
        return service.get_edit_model(request_id, user_id)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except NoStoreError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/edit",
    response_model=PaymentRequestResponse,
    status_code=201,
    summary="Create payment request",
    responses={
        401: {"description": "Unauthorized"},
        422: {"description": "Validation error"},
    },
)
@router.post(
    "/edit/{request_id}",
    response_model=PaymentRequestResponse,
    summary="Update payment request",
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
        422: {"description": "Validation error"},
    },
)
async def save_payment_request(
    data: PaymentRequestUpdate,
    response: Response,
    request_id: UUID | None = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    events: EventAggregator = Depends(get_event_aggregator),
) -> PaymentRequestResponse:
    """Create or update a payment request. Blob fields are replaced wholesale."""
    service = PaymentRequestService(db, events)
    try:
        pr = service.save(request_id, user_id, data)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except PaymentRequestValidationError as e:
        raise HTTPException(status_code=422, detail={"errors": e.errors}) from None
    if request_id is not None:
        response.status_code = 200
    return PaymentRequestResponse.from_record(pr)


@router.get(
    "/{request_id}",
    response_model=PaymentRequestViewResponse,
    summary="View payment request",
    responses={404: {"description": "Payment request not found"}},
)
async def view_payment_request(
    request_id: UUID,
    db: Session = Depends(get_db),
) -> PaymentRequestViewResponse:
    """Public view of a payment request and what is still owed on it."""
    service = PaymentRequestService(db)
    view = service.get_view(request_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Payment request not found")
    return PaymentRequestViewResponse.model_validate(view)


@router.get(
    "/{request_id}/pay",
    summary="Pay payment request",
    response_model=None,
    responses={
        303: {"description": "Redirect to the invoice, or back to the request view"},
        400: {"description": "The request cannot be paid"},
        404: {"description": "Payment request not found"},
        504: {"description": "Timed out"},
    },
)
def pay_payment_request(
    request_id: UUID,
    request: Request,
    redirect_to_invoice: bool = Query(default=True, alias="redirectToInvoice"),
    amount: Decimal | None = None,
    db: Session = Depends(get_db),
    events: EventAggregator = Depends(get_event_aggregator),
) -> Response:
    """Get an invoice for the amount due, reusing the open one if there is one.

    Plain ``def``: pay blocks on a per-request lock, so it runs in the threadpool.
    """
    service = PaymentRequestService(db, events)
    deadline = utc_now() + timedelta(seconds=settings.PAY_TIMEOUT_SECONDS)
    base_url = str(request.base_url).rstrip("/")
    try:
        invoice_id = service.pay(request_id, amount, base_url=base_url, deadline=deadline)
    except PayRejectedError as e:
        if redirect_to_invoice and e.reason in _VIEW_REDIRECT_REJECTIONS:
            return _view_redirect(request, request_id)
        return PlainTextResponse(str(e), status_code=400)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except PaymentProcessingError as e:
        return PlainTextResponse(str(e), status_code=400)
    except OperationTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from None

    if redirect_to_invoice:
        return RedirectResponse(
            url=str(request.url_for("get_invoice", invoice_id=invoice_id)),
            status_code=303,
        )
    return PlainTextResponse(str(invoice_id))


@router.get(
    "/{request_id}/cancel",
    summary="Cancel the unpaid pending invoice",
    response_model=None,
    responses={
        303: {"description": "Redirect to the request view"},
        400: {"description": "No unpaid pending invoice to cancel"},
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
    },
)
async def cancel_pending_invoice(
    request_id: UUID,
    request: Request,
    redirect: bool = True,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    events: EventAggregator = Depends(get_event_aggregator),
) -> Response:
    service = PaymentRequestService(db, events)
    try:
        service.cancel_pending_invoice(request_id, user_id)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except CancelRejectedError as e:
        return PlainTextResponse(str(e), status_code=400)

    if redirect:
        return _view_redirect(request, request_id)
    return PlainTextResponse("Payment cancelled")


@router.get(
    "/{request_id}/clone",
    response_model=PaymentRequestEditModel,
    summary="Clone payment request",
    responses={
        400: {"description": "The user has no store"},
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
    },
)
async def clone_payment_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> PaymentRequestEditModel:
    """Return the request as an unsaved copy, ready to be submitted to POST /edit."""
    service = PaymentRequestService(db)
    try:
        return service.get_clone_model(request_id, user_id)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except NoStoreError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/{request_id}/archive",
    response_model=ArchiveToggleResponse,
    summary="Archive or unarchive payment request",
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
    },
)
async def toggle_archive(
    request_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    events: EventAggregator = Depends(get_event_aggregator),
) -> ArchiveToggleResponse:
    service = PaymentRequestService(db, events)
    try:
        pr = service.toggle_archive(request_id, user_id)
    except PaymentRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Payment request not found") from None
    except PaymentRequestValidationError as e:
        raise HTTPException(status_code=422, detail={"errors": e.errors}) from None

    if pr.archived:
        message = (
            "The payment request has been archived and will no longer appear "
            "in the payment request list by default."
        )
    else:
        message = (
            "The payment request has been unarchived and will appear "
            "in the payment request list by default."
        )
    return ArchiveToggleResponse(
        payment_request=PaymentRequestResponse.from_record(pr),
        message=message,
    )
