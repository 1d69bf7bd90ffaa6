from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.invoice import Invoice, InvoiceStatus
from app.models.invoice_payment import InvoicePayment
from app.models.invoice_tag import InvoiceTag
from app.schemas.invoice import CreateInvoiceRequest


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_by_tag(self, tag: str) -> list[Invoice]:
        """Get invoices carrying an internal tag, newest first with id as tie-break."""
        return (
            self.db.query(Invoice)
            .join(InvoiceTag, InvoiceTag.invoice_id == Invoice.id)
            .filter(InvoiceTag.tag == tag)
            .order_by(Invoice.created_at.desc(), Invoice.id.asc())
            .all()
        )

    def get_payments(self, invoice_ids: list[UUID]) -> list[InvoicePayment]:
        if not invoice_ids:
            return []
        return (
            self.db.query(InvoicePayment)
            .filter(InvoicePayment.invoice_id.in_(invoice_ids))
            .order_by(InvoicePayment.received_at.asc())
            .all()
        )

    def get_tags(self, invoice_id: UUID) -> list[str]:
        rows = self.db.query(InvoiceTag.tag).filter(InvoiceTag.invoice_id == invoice_id).all()
        return [row[0] for row in rows]

    def get_expired_new(self, now: datetime) -> list[Invoice]:
        """Get new invoices whose expiration time has passed."""
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.status == InvoiceStatus.NEW.value,
                Invoice.expires_at <= now,
            )
            .order_by(Invoice.created_at.asc())
            .all()
        )

    def create(
        self,
        store_id: UUID,
        data: CreateInvoiceRequest,
        expires_at: datetime,
        internal_tags: list[str],
    ) -> Invoice:
        """Create an invoice and its tags in a single commit."""
        invoice = Invoice(
            store_id=store_id,
            order_id=data.order_id,
            status=InvoiceStatus.NEW.value,
            price=data.price,
            currency=data.currency.upper(),
            amount_paid=Decimal(0),
            buyer_email=data.buyer_email,
            redirect_url=data.redirect_url,
            expires_at=expires_at,
        )
        self.db.add(invoice)
        self.db.flush()

        for tag in dict.fromkeys(internal_tags):
            self.db.add(InvoiceTag(invoice_id=invoice.id, tag=tag))

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def add_payment(
        self,
        invoice: Invoice,
        amount: Decimal,
        reference: str | None,
        received_at: datetime,
    ) -> InvoicePayment:
        """Record a payment and add it to the invoice's paid amount."""
        payment = InvoicePayment(
            invoice_id=invoice.id,
            amount=amount,
            reference=reference,
            received_at=received_at,
        )
        self.db.add(payment)
        invoice.amount_paid = Decimal(str(invoice.amount_paid)) + amount  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        self.db.refresh(payment)
        return payment

    def set_status(
        self,
        invoice: Invoice,
        status: InvoiceStatus,
        paid_at: datetime | None = None,
    ) -> Invoice:
        invoice.status = status.value  # type: ignore[assignment]
        if paid_at is not None:
            invoice.paid_at = paid_at  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice
