from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.invoice import InvoiceStatus


class CreateInvoiceRequest(BaseModel):
    """Parameters for a new invoice, as sent by the invoice's originator."""

    currency: str = Field(max_length=10)
    price: Decimal
    order_id: str | None = Field(default=None, max_length=255)
    buyer_email: str | None = None
    redirect_url: str | None = None


class InvoicePaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    reference: str | None = Field(default=None, max_length=255)


class InvoicePaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    reference: str | None = None
    received_at: datetime


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    store_id: UUID
    order_id: str | None = None
    status: InvoiceStatus
    price: Decimal
    currency: str
    amount_paid: Decimal
    buyer_email: str | None = None
    redirect_url: str | None = None
    expires_at: datetime
    paid_at: datetime | None = None
    created_at: datetime
    payments: list[InvoicePaymentResponse] = Field(default_factory=list)
