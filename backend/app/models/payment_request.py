"""PaymentRequest model - a merchant's published demand for payment."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, func

from app.core.database import Base
from app.models.shared import UUIDType, ensure_utc, generate_uuid, utc_now

BLOB_VERSION = 1


class PaymentRequestBlob(BaseModel):
    """Versioned payload of business and display fields.

    Stored as JSON on the record. Unknown keys are ignored and missing keys
    fall back to defaults, so blobs written by older or newer versions load.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = BLOB_VERSION
    title: str = ""
    description: str | None = None
    email: str | None = None
    amount: Decimal = Decimal("0")
    currency: str = ""
    expiry_date: datetime | None = None
    allow_custom_payment_amounts: bool = False
    embedded_css: str | None = None
    custom_css_link: str | None = None

    @field_validator("expiry_date")
    @classmethod
    def _expiry_in_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class PaymentRequest(Base):
    __tablename__ = "payment_requests"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    store_id = Column(
        UUIDType,
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    archived = Column(Boolean, nullable=False, default=False, index=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    blob = Column(JSON, nullable=False, default=dict)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def get_blob(self) -> PaymentRequestBlob:
        raw: dict[str, Any] = dict(self.blob or {})
        return PaymentRequestBlob.model_validate(raw)

    def set_blob(self, blob: PaymentRequestBlob) -> None:
        data = blob.model_dump(mode="json")
        data["version"] = BLOB_VERSION
        self.blob = data  # type: ignore[assignment]
