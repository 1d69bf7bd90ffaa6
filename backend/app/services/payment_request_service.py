"""Payment request service: lifecycle rules and invoice orchestration."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.events import (
    EventAggregator,
    InvoiceEvent,
    InvoiceEventCode,
    PaymentRequestUpdated,
    event_aggregator,
)
from app.core.locks import KeyedLock, LockTimeoutError
from app.models.payment_request import PaymentRequest, PaymentRequestBlob
from app.models.shared import utc_now
from app.repositories.payment_request_repository import (
    PaymentRequestRepository,
    get_internal_tag,
    get_order_id_for_payment_request,
)
from app.repositories.store_repository import StoreRepository
from app.schemas.invoice import CreateInvoiceRequest
from app.schemas.payment_request import (
    PaymentRequestEditModel,
    PaymentRequestResponse,
    PaymentRequestUpdate,
    StoreOption,
)
from app.services.currency_service import get_currency_data
from app.services.invoice_service import InvoiceService
from app.services.payment_request_view import (
    PaymentRequestView,
    build_snapshots,
    compute_view,
    find_cancellable_invoice,
)

logger = logging.getLogger(__name__)

# Serialises the reuse-check-and-create sequence of pay() within this process.
_pay_locks = KeyedLock()


class PayRejection(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    ARCHIVED = "archived"
    ALREADY_SETTLED = "already_settled"
    EXPIRED = "expired"

    @property
    def message(self) -> str:
        return _PAY_REJECTION_MESSAGES[self]


_PAY_REJECTION_MESSAGES = {
    PayRejection.INVALID_AMOUNT: "Please provide an amount greater than 0",
    PayRejection.ARCHIVED: "Payment Request cannot be paid as it has been archived",
    PayRejection.ALREADY_SETTLED: "Payment Request has already been settled.",
    PayRejection.EXPIRED: "Payment Request has expired",
}


class PaymentRequestNotFoundError(LookupError):
    """Unknown payment request, or one the caller does not own."""


class PaymentRequestValidationError(ValueError):
    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class PayRejectedError(ValueError):
    def __init__(self, reason: PayRejection):
        super().__init__(reason.message)
        self.reason = reason


class CancelRejectedError(ValueError):
    """There is no single unpaid new invoice to cancel."""


class NoStoreError(ValueError):
    """The user has no store to attach a payment request to."""


class OperationTimeoutError(TimeoutError):
    """The caller's deadline passed before the operation could complete."""


def _ensure_before(deadline: datetime | None) -> None:
    if deadline is not None and utc_now() >= deadline:
        raise OperationTimeoutError("The operation timed out")


def _seconds_left(deadline: datetime | None) -> float | None:
    if deadline is None:
        return None
    return (deadline - utc_now()).total_seconds()


class PaymentRequestService:
    """Service for managing payment requests and the invoices that pay them."""

    def __init__(self, db: Session, events: EventAggregator | None = None):
        self.db = db
        self.events = events if events is not None else event_aggregator
        self.pr_repo = PaymentRequestRepository(db)
        self.store_repo = StoreRepository(db)
        self.invoice_service = InvoiceService(db, self.events)

    def get_view(
        self,
        request_id: UUID,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> PaymentRequestView | None:
        """Load a payment request with its invoices and derive its current state.

        ``user_id`` scopes the lookup to the user's stores; pass None for
        anonymous (payer) access.
        """
        record = self.pr_repo.find(request_id, user_id)
        if record is None:
            return None

        invoices = self.invoice_service.get_invoices_by_tag(get_internal_tag(request_id))
        payments = self.invoice_service.get_payments([inv.id for inv in invoices])  # type: ignore[misc]
        return compute_view(record, build_snapshots(invoices, payments), now or utc_now())

    def pay(
        self,
        request_id: UUID,
        amount: Decimal | None = None,
        base_url: str = "",
        deadline: datetime | None = None,
    ) -> UUID:
        """Return the id of an invoice the payer can use to pay the request.

        Reuses the request's open invoice if there is one, otherwise creates a
        new invoice for the amount still due (or the caller's amount when
        custom amounts are allowed, capped at the amount due).

        Raises:
            PayRejectedError: invalid amount, archived, settled or expired.
            PaymentRequestNotFoundError: no such payment request.
            PaymentProcessingError: the invoice could not be created.
            OperationTimeoutError: ``deadline`` passed first.
        """
        if amount is not None and amount <= 0:
            raise PayRejectedError(PayRejection.INVALID_AMOUNT)

        try:
            with _pay_locks.hold(str(request_id), timeout=_seconds_left(deadline)):
                return self._pay_locked(request_id, amount, base_url, deadline)
        except LockTimeoutError:
            raise OperationTimeoutError("Timed out waiting for a concurrent payment attempt") from None

    def _pay_locked(
        self,
        request_id: UUID,
        amount: Decimal | None,
        base_url: str,
        deadline: datetime | None,
    ) -> UUID:
        view = self.get_view(request_id)
        if view is None:
            raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")
        if view.archived:
            raise PayRejectedError(PayRejection.ARCHIVED)
        if view.amount_due <= 0:
            raise PayRejectedError(PayRejection.ALREADY_SETTLED)
        if view.is_expired:
            raise PayRejectedError(PayRejection.EXPIRED)

        if view.open_invoice is not None:
            logger.info(
                "Reusing open invoice %s for payment request %s",
                view.open_invoice.id,
                request_id,
            )
            return view.open_invoice.id

        if view.allow_custom_payment_amounts and amount is not None:
            price = min(view.amount_due, amount)
        else:
            price = view.amount_due

        _ensure_before(deadline)
        invoice = self.invoice_service.create_invoice(
            store_id=view.store_id,
            data=CreateInvoiceRequest(
                order_id=get_order_id_for_payment_request(request_id),
                currency=view.currency,
                price=price,
                buyer_email=view.email,
                redirect_url=f"{base_url.rstrip('/')}/payment-requests/{request_id}",
            ),
            internal_tags=[get_internal_tag(request_id)],
        )
        logger.info(
            "Created invoice %s for payment request %s (%s %s)",
            invoice.id,
            request_id,
            price,
            view.currency,
        )
        return invoice.id  # type: ignore[return-value]

    def cancel_pending_invoice(self, request_id: UUID, user_id: UUID | None = None) -> UUID:
        """Invalidate the request's unpaid new invoice so a fresh one can be created.

        Returns the id of the cancelled invoice.
        """
        view = self.get_view(request_id, user_id)
        if view is None:
            raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")

        candidate = find_cancellable_invoice(view.invoices)
        if candidate is None:
            raise CancelRejectedError("No unpaid pending invoice to cancel")

        invoice = self.invoice_service.invalidate_unpaid_invoice(candidate.id)
        self.events.publish(
            InvoiceEvent(
                invoice_id=invoice.id,  # type: ignore[arg-type]
                store_id=invoice.store_id,  # type: ignore[arg-type]
                event_code=InvoiceEventCode.MARKED_INVALID,
                order_id=invoice.order_id,  # type: ignore[arg-type]
            )
        )
        logger.info("Cancelled invoice %s of payment request %s", invoice.id, request_id)
        return invoice.id  # type: ignore[return-value]

    def get_edit_model(
        self,
        request_id: UUID | None,
        user_id: UUID,
    ) -> PaymentRequestEditModel:
        """Build the edit form for an existing request, or a blank one when ``request_id`` is None."""
        record = None
        if request_id is not None:
            record = self.pr_repo.find(request_id, user_id)
            if record is None:
                raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")

        stores = self.store_repo.get_by_user(user_id)
        if not stores:
            raise NoStoreError("You need to create at least one store")
        options = [StoreOption(id=s.id, name=s.name) for s in stores]  # type: ignore[arg-type]

        if record is None:
            return PaymentRequestEditModel(stores=options)

        blob = record.get_blob()
        return PaymentRequestEditModel(
            id=record.id,  # type: ignore[arg-type]
            store_id=record.store_id,  # type: ignore[arg-type]
            archived=bool(record.archived),
            title=blob.title,
            description=blob.description,
            email=blob.email,
            amount=blob.amount,
            currency=blob.currency,
            expiry_date=blob.expiry_date,
            allow_custom_payment_amounts=blob.allow_custom_payment_amounts,
            embedded_css=blob.embedded_css,
            custom_css_link=blob.custom_css_link,
            stores=options,
        )

    def get_clone_model(self, request_id: UUID, user_id: UUID) -> PaymentRequestEditModel:
        """Present an existing request as a new, unsaved one."""
        model = self.get_edit_model(request_id, user_id)
        return model.model_copy(
            update={
                "id": None,
                "archived": False,
                "title": f"Clone of {model.title}",
            }
        )

    def save(
        self,
        request_id: UUID | None,
        user_id: UUID,
        data: PaymentRequestUpdate,
    ) -> PaymentRequest:
        """Create (``request_id`` None) or update a payment request.

        Blob fields are replaced wholesale. An archived request cannot be saved
        with ``archived`` still set; use toggle_archive to change the flag.
        """
        record = None
        if request_id is not None:
            record = self.pr_repo.find(request_id, user_id)
            if record is None:
                raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")

        errors: dict[str, str] = {}
        currency = get_currency_data(data.currency)
        if currency is None:
            errors["currency"] = "Invalid currency"
        if record is not None and record.archived and data.archived:
            errors["archived"] = "You cannot edit an archived payment request."
        if not self.store_repo.user_has_access(data.store_id, user_id):
            errors["store_id"] = "Invalid store"
        if errors:
            raise PaymentRequestValidationError(errors)

        if record is None:
            record = PaymentRequest(created=utc_now())

        record.store_id = data.store_id  # type: ignore[assignment]
        record.archived = data.archived  # type: ignore[assignment]
        record.set_blob(
            PaymentRequestBlob(
                title=data.title,
                description=data.description,
                email=data.email,
                amount=data.amount,
                currency=currency.code,  # type: ignore[union-attr]
                expiry_date=data.expiry_date,
                allow_custom_payment_amounts=data.allow_custom_payment_amounts,
                embedded_css=data.embedded_css,
                custom_css_link=data.custom_css_link,
            )
        )
        record = self.pr_repo.save(record)
        logger.info("Saved payment request %s", record.id)

        self.events.publish(
            PaymentRequestUpdated(
                payment_request_id=record.id,  # type: ignore[arg-type]
                store_id=record.store_id,  # type: ignore[arg-type]
                data=PaymentRequestResponse.from_record(record).model_dump(mode="json"),
            )
        )
        return record

    def toggle_archive(self, request_id: UUID, user_id: UUID) -> PaymentRequest:
        """Flip the archived flag, saving every other field unchanged."""
        record = self.pr_repo.find(request_id, user_id)
        if record is None:
            raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")

        blob = record.get_blob()
        return self.save(
            request_id,
            user_id,
            PaymentRequestUpdate(
                store_id=record.store_id,  # type: ignore[arg-type]
                archived=not record.archived,
                title=blob.title,
                description=blob.description,
                email=blob.email,
                amount=blob.amount,
                currency=blob.currency,
                expiry_date=blob.expiry_date,
                allow_custom_payment_amounts=blob.allow_custom_payment_amounts,
                embedded_css=blob.embedded_css,
                custom_css_link=blob.custom_css_link,
            ),
        )

    def list_payment_requests(
        self,
        user_id: UUID,
        skip: int = 0,
        count: int = 50,
        include_archived: bool = False,
    ) -> tuple[list[PaymentRequest], int]:
        return self.pr_repo.find_payment_requests(
            user_id,
            skip=skip,
            count=count,
            include_archived=include_archived,
        )
