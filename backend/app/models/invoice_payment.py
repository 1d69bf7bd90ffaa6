"""InvoicePayment model for amounts received against an invoice."""

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class InvoicePayment(Base):
    """A single payment received for an invoice, in the invoice currency."""

    __tablename__ = "invoice_payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount = Column(Numeric(20, 8), nullable=False)
    reference = Column(String(255), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
