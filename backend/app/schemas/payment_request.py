"""PaymentRequest schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.invoice import InvoiceStatus
from app.models.shared import ensure_utc
from app.services.payment_request_view import PaymentRequestStatus

if TYPE_CHECKING:
    from app.models.payment_request import PaymentRequest


class PaymentRequestUpdate(BaseModel):
    """Schema for saving (creating or updating) a payment request."""

    store_id: UUID
    archived: bool = False
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    email: EmailStr | None = None
    amount: Decimal = Field(ge=0)
    currency: str = Field(max_length=10)
    expiry_date: datetime | None = None
    allow_custom_payment_amounts: bool = False
    embedded_css: str | None = None
    custom_css_link: str | None = Field(default=None, max_length=2048)

    @field_validator("expiry_date")
    @classmethod
    def _expiry_in_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class StoreOption(BaseModel):
    id: UUID
    name: str


class PaymentRequestEditModel(BaseModel):
    """The edit form: current values plus the stores the user may choose from.

    Fields are optional because a blank form is returned for new requests.
    """

    id: UUID | None = None
    store_id: UUID | None = None
    archived: bool = False
    title: str | None = None
    description: str | None = None
    email: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    expiry_date: datetime | None = None
    allow_custom_payment_amounts: bool = False
    embedded_css: str | None = None
    custom_css_link: str | None = None
    stores: list[StoreOption] = Field(default_factory=list)


class PaymentRequestResponse(BaseModel):
    """A stored payment request record with its blob fields flattened."""

    id: UUID
    store_id: UUID
    archived: bool
    created: datetime
    title: str
    description: str | None = None
    email: str | None = None
    amount: Decimal
    currency: str
    expiry_date: datetime | None = None
    allow_custom_payment_amounts: bool
    embedded_css: str | None = None
    custom_css_link: str | None = None

    @classmethod
    def from_record(cls, record: PaymentRequest) -> PaymentRequestResponse:
        blob = record.get_blob()
        return cls(
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
        )


class PaymentRequestListResponse(BaseModel):
    items: list[PaymentRequestResponse]
    total: int
    skip: int
    count: int
    include_archived: bool


class ArchiveToggleResponse(BaseModel):
    payment_request: PaymentRequestResponse
    message: str


class InvoicePaymentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    received_at: datetime


class InvoiceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: InvoiceStatus
    price: Decimal
    currency: str
    amount_paid: Decimal
    created_at: datetime
    expires_at: datetime
    payments: list[InvoicePaymentSummary] = Field(default_factory=list)


class PaymentRequestViewResponse(BaseModel):
    """Public view of a payment request with its derived settlement state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    store_id: UUID
    archived: bool
    created: datetime
    title: str
    description: str | None = None
    email: str | None = None
    amount: Decimal
    currency: str
    expiry_date: datetime | None = None
    allow_custom_payment_amounts: bool
    embedded_css: str | None = None
    custom_css_link: str | None = None
    amount_collected: Decimal
    amount_due: Decimal
    is_expired: bool
    is_settled: bool
    status: PaymentRequestStatus
    any_pending_invoice: bool
    pending_invoice_has_payments: bool
    invoices: list[InvoiceSummaryResponse] = Field(default_factory=list)
