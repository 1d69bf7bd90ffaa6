from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, Text, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class InvoiceStatus(str, Enum):
    NEW = "new"
    PAID = "paid"
    CONFIRMED = "confirmed"
    COMPLETE = "complete"
    EXPIRED = "expired"
    INVALID = "invalid"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_store_id_status", "store_id", "status"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    store_id = Column(UUIDType, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False)
    order_id = Column(String(255), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.NEW.value)

    # Amounts (stored as Decimal with 8 decimal places so crypto prices fit)
    price = Column(Numeric(20, 8), nullable=False)
    currency = Column(String(10), nullable=False)
    amount_paid = Column(Numeric(20, 8), nullable=False, default=0)

    buyer_email = Column(String(255), nullable=True)
    redirect_url = Column(Text, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Set application-side with microseconds so creation order is stable
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
