from app.schemas.api_key import ApiKeyCreate, ApiKeyResponse
from app.schemas.invoice import (
    CreateInvoiceRequest,
    InvoicePaymentCreate,
    InvoicePaymentResponse,
    InvoiceResponse,
)
from app.schemas.payment_request import (
    ArchiveToggleResponse,
    InvoiceSummaryResponse,
    PaymentRequestEditModel,
    PaymentRequestListResponse,
    PaymentRequestResponse,
    PaymentRequestUpdate,
    PaymentRequestViewResponse,
    StoreOption,
)
from app.schemas.store import StoreCreate, StoreResponse
from app.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointResponse,
    WebhookResponse,
)

__all__ = [
    "ApiKeyCreate",
    "ApiKeyResponse",
    "ArchiveToggleResponse",
    "CreateInvoiceRequest",
    "InvoicePaymentCreate",
    "InvoicePaymentResponse",
    "InvoiceResponse",
    "InvoiceSummaryResponse",
    "PaymentRequestEditModel",
    "PaymentRequestListResponse",
    "PaymentRequestResponse",
    "PaymentRequestUpdate",
    "PaymentRequestViewResponse",
    "StoreCreate",
    "StoreOption",
    "StoreResponse",
    "WebhookEndpointCreate",
    "WebhookEndpointResponse",
    "WebhookResponse",
]
