"""Derived state of a payment request.

Pure functions: given a payment request record, a snapshot of its linked
invoices and the current time, compute what is still owed and whether the
request can be paid. Nothing here touches the database.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from app.models.invoice import Invoice, InvoiceStatus
from app.models.invoice_payment import InvoicePayment
from app.models.payment_request import PaymentRequest
from app.models.shared import ensure_utc


class PaymentRequestStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass(frozen=True)
class InvoicePaymentSnapshot:
    amount: Decimal
    received_at: datetime


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Read-only copy of the invoice fields the derived view depends on."""

    id: UUID
    status: InvoiceStatus
    price: Decimal
    currency: str
    amount_paid: Decimal
    created_at: datetime
    expires_at: datetime
    payments: tuple[InvoicePaymentSnapshot, ...] = ()

    def is_open(self, now: datetime) -> bool:
        """Freshly created, not paid, not expired: a payer can still use it."""
        return self.status == InvoiceStatus.NEW and now < self.expires_at

    @classmethod
    def from_invoice(
        cls,
        invoice: Invoice,
        payments: Iterable[InvoicePayment] = (),
    ) -> InvoiceSnapshot:
        return cls(
            id=invoice.id,  # type: ignore[arg-type]
            status=InvoiceStatus(invoice.status),
            price=Decimal(str(invoice.price)),
            currency=str(invoice.currency),
            amount_paid=Decimal(str(invoice.amount_paid or 0)),
            created_at=ensure_utc(invoice.created_at),  # type: ignore[arg-type]
            expires_at=ensure_utc(invoice.expires_at),  # type: ignore[arg-type]
            payments=tuple(
                InvoicePaymentSnapshot(
                    amount=Decimal(str(p.amount)),
                    received_at=ensure_utc(p.received_at),  # type: ignore[arg-type]
                )
                for p in payments
            ),
        )


@dataclass(frozen=True)
class PaymentRequestView:
    id: UUID
    store_id: UUID
    archived: bool
    created: datetime
    title: str
    description: str | None
    email: str | None
    amount: Decimal
    currency: str
    expiry_date: datetime | None
    allow_custom_payment_amounts: bool
    embedded_css: str | None
    custom_css_link: str | None
    amount_collected: Decimal
    amount_due: Decimal
    is_expired: bool
    is_settled: bool
    status: PaymentRequestStatus
    any_pending_invoice: bool
    pending_invoice_has_payments: bool
    invoices: tuple[InvoiceSnapshot, ...] = field(default_factory=tuple)
    open_invoice: InvoiceSnapshot | None = None


def settled_amount(invoice: InvoiceSnapshot) -> Decimal:
    """Amount an invoice covers toward its request. Invalid invoices cover nothing."""
    if invoice.status == InvoiceStatus.INVALID:
        return Decimal(0)
    return invoice.amount_paid


def amount_collected(invoices: Iterable[InvoiceSnapshot]) -> Decimal:
    return sum((settled_amount(inv) for inv in invoices), Decimal(0))


def is_expired(expiry_date: datetime | None, now: datetime) -> bool:
    return expiry_date is not None and now >= expiry_date


def find_cancellable_invoice(invoices: Sequence[InvoiceSnapshot]) -> InvoiceSnapshot | None:
    """The single new invoice with no payments at all, or None if zero or several match."""
    candidates = [
        inv for inv in invoices if inv.status == InvoiceStatus.NEW and not inv.payments
    ]
    if len(candidates) != 1:
        return None
    return candidates[0]


def build_snapshots(
    invoices: Sequence[Invoice],
    payments: Mapping[UUID, Iterable[InvoicePayment]],
) -> tuple[InvoiceSnapshot, ...]:
    """Snapshot ORM invoices, keeping their order."""
    return tuple(
        InvoiceSnapshot.from_invoice(inv, payments.get(inv.id, ()))  # type: ignore[arg-type]
        for inv in invoices
    )


def compute_view(
    record: PaymentRequest,
    invoices: Sequence[InvoiceSnapshot],
    now: datetime,
) -> PaymentRequestView:
    """Derive the current state of a payment request from its linked invoices."""
    now = ensure_utc(now)  # type: ignore[assignment]
    blob = record.get_blob()

    collected = amount_collected(invoices)
    amount_due = max(Decimal(0), blob.amount - collected)
    expired = is_expired(blob.expiry_date, now)
    settled = amount_due <= 0

    if settled:
        status = PaymentRequestStatus.COMPLETED
    elif expired:
        status = PaymentRequestStatus.EXPIRED
    else:
        status = PaymentRequestStatus.PENDING

    open_invoices = [inv for inv in invoices if inv.is_open(now)]

    return PaymentRequestView(
        id=record.id,  # type: ignore[arg-type]
        store_id=record.store_id,  # type: ignore[arg-type]
        archived=bool(record.archived),
        created=ensure_utc(record.created),  # type: ignore[arg-type]
        title=blob.title,
        description=blob.description,
        email=blob.email,
        amount=blob.amount,
        currency=blob.currency,
        expiry_date=blob.expiry_date,
        allow_custom_payment_amounts=blob.allow_custom_payment_amounts,
        embedded_css=blob.embedded_css,
        custom_css_link=blob.custom_css_link,
        amount_collected=collected,
        amount_due=amount_due,
        is_expired=expired,
        is_settled=settled,
        status=status,
        any_pending_invoice=bool(open_invoices),
        pending_invoice_has_payments=any(inv.payments for inv in open_invoices),
        invoices=tuple(invoices),
        open_invoice=open_invoices[0] if open_invoices else None,
    )
