"""InvoiceTag table holding the internal tags attached to an invoice."""

from sqlalchemy import Column, ForeignKey, String

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class InvoiceTag(Base):
    """Internal tag on an invoice. Used to look invoices up by their origin."""

    __tablename__ = "invoice_tags"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag = Column(String(255), nullable=False, index=True)
