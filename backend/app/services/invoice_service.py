"""Invoice service: creates invoices, records payments and moves invoice state."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.events import EventAggregator, InvoiceEvent, InvoiceEventCode, event_aggregator
from app.models.invoice import Invoice, InvoiceStatus
from app.models.invoice_payment import InvoicePayment
from app.models.shared import ensure_utc, utc_now
from app.repositories.invoice_repository import InvoiceRepository
from app.repositories.store_repository import StoreRepository
from app.schemas.invoice import CreateInvoiceRequest
from app.services.currency_service import get_currency_data

logger = logging.getLogger(__name__)


class PaymentProcessingError(ValueError):
    """The invoice could not be created; the message is safe to show the payer."""


class InvoiceNotFoundError(LookupError):
    """No invoice exists for the given id."""


class InvoiceService:
    """Service owning invoice records and their status transitions."""

    def __init__(self, db: Session, events: EventAggregator | None = None):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.store_repo = StoreRepository(db)
        self.events = events if events is not None else event_aggregator

    def _publish(self, invoice: Invoice, code: InvoiceEventCode) -> None:
        self.events.publish(
            InvoiceEvent(
                invoice_id=invoice.id,  # type: ignore[arg-type]
                store_id=invoice.store_id,  # type: ignore[arg-type]
                event_code=code,
                order_id=invoice.order_id,  # type: ignore[arg-type]
            )
        )

    def create_invoice(
        self,
        store_id: UUID,
        data: CreateInvoiceRequest,
        internal_tags: list[str] | None = None,
    ) -> Invoice:
        """Create a new invoice for a store.

        Raises:
            PaymentProcessingError: if the store, currency or price is not acceptable.
        """
        if self.store_repo.get_by_id(store_id) is None:
            raise PaymentProcessingError(f"Store {store_id} not found")
        if get_currency_data(data.currency) is None:
            raise PaymentProcessingError(f"Currency {data.currency} is not supported")
        if data.price <= 0:
            raise PaymentProcessingError("The invoice price must be greater than 0")
        if data.price > settings.INVOICE_MAX_AMOUNT:
            raise PaymentProcessingError(
                f"The invoice price exceeds the maximum of {settings.INVOICE_MAX_AMOUNT}"
            )

        expires_at = utc_now() + timedelta(minutes=settings.INVOICE_EXPIRATION_MINUTES)
        invoice = self.invoice_repo.create(
            store_id=store_id,
            data=data,
            expires_at=expires_at,
            internal_tags=internal_tags or [],
        )
        self._publish(invoice, InvoiceEventCode.CREATED)
        return invoice

    def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        return self.invoice_repo.get_by_id(invoice_id)

    def get_invoices_by_tag(self, tag: str) -> list[Invoice]:
        return self.invoice_repo.get_by_tag(tag)

    def get_payments(self, invoice_ids: list[UUID]) -> dict[UUID, list[InvoicePayment]]:
        """Group the payments of several invoices by invoice id."""
        grouped: dict[UUID, list[InvoicePayment]] = {invoice_id: [] for invoice_id in invoice_ids}
        for payment in self.invoice_repo.get_payments(invoice_ids):
            grouped.setdefault(payment.invoice_id, []).append(payment)  # type: ignore[arg-type]
        return grouped

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        reference: str | None = None,
    ) -> Invoice:
        """Record a payment received for an invoice.

        A new invoice becomes paid once the paid amount reaches its price.
        Payments may still arrive on expired invoices.
        """
        invoice = self._require(invoice_id)
        if invoice.status in (InvoiceStatus.INVALID.value, InvoiceStatus.COMPLETE.value):
            raise ValueError(f"Invoice {invoice_id} cannot receive payments in status {invoice.status}")
        if amount <= 0:
            raise ValueError("Payment amount must be greater than 0")

        now = utc_now()
        self.invoice_repo.add_payment(invoice, amount, reference, now)
        self._publish(invoice, InvoiceEventCode.RECEIVED_PAYMENT)

        paid = Decimal(str(invoice.amount_paid))
        if invoice.status == InvoiceStatus.NEW.value and paid >= Decimal(str(invoice.price)):
            self.invoice_repo.set_status(invoice, InvoiceStatus.PAID, paid_at=now)
            self._publish(invoice, InvoiceEventCode.PAID_IN_FULL)
        return invoice

    def mark_confirmed(self, invoice_id: UUID) -> Invoice:
        invoice = self._require(invoice_id)
        if invoice.status != InvoiceStatus.PAID.value:
            raise ValueError("Only paid invoices can be confirmed")
        self.invoice_repo.set_status(invoice, InvoiceStatus.CONFIRMED)
        self._publish(invoice, InvoiceEventCode.CONFIRMED)
        return invoice

    def mark_complete(self, invoice_id: UUID) -> Invoice:
        invoice = self._require(invoice_id)
        if invoice.status not in (InvoiceStatus.PAID.value, InvoiceStatus.CONFIRMED.value):
            raise ValueError("Only paid or confirmed invoices can be completed")
        self.invoice_repo.set_status(invoice, InvoiceStatus.COMPLETE)
        self._publish(invoice, InvoiceEventCode.COMPLETED)
        return invoice

    def invalidate_unpaid_invoice(self, invoice_id: UUID) -> Invoice:
        """Move an invoice to invalid without publishing; the caller announces it."""
        invoice = self._require(invoice_id)
        if invoice.status in (InvoiceStatus.COMPLETE.value, InvoiceStatus.INVALID.value):
            raise ValueError(f"Invoice {invoice_id} cannot be invalidated in status {invoice.status}")
        return self.invoice_repo.set_status(invoice, InvoiceStatus.INVALID)

    def mark_invalid(self, invoice_id: UUID) -> Invoice:
        """Operator path: invalidate an invoice and announce it."""
        invoice = self.invalidate_unpaid_invoice(invoice_id)
        self._publish(invoice, InvoiceEventCode.MARKED_INVALID)
        logger.info("Invoice %s marked invalid", invoice_id)
        return invoice

    def expire_invoices(self, now: datetime | None = None) -> int:
        """Expire every new invoice whose expiration time has passed."""
        now = ensure_utc(now) or utc_now()
        expired = self.invoice_repo.get_expired_new(now)
        for invoice in expired:
            self.invoice_repo.set_status(invoice, InvoiceStatus.EXPIRED)
            self._publish(invoice, InvoiceEventCode.EXPIRED)
        if expired:
            logger.info("Expired %d invoices", len(expired))
        return len(expired)

    def _require(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
        return invoice
