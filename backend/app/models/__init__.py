from app.models.api_key import ApiKey
from app.models.invoice import Invoice, InvoiceStatus
from app.models.invoice_payment import InvoicePayment
from app.models.invoice_tag import InvoiceTag
from app.models.payment_request import PaymentRequest, PaymentRequestBlob
from app.models.store import Store
from app.models.store_user import StoreUser
from app.models.webhook import Webhook
from app.models.webhook_endpoint import WebhookEndpoint

__all__ = [
    "ApiKey",
    "Invoice",
    "InvoicePayment",
    "InvoiceStatus",
    "InvoiceTag",
    "PaymentRequest",
    "PaymentRequestBlob",
    "Store",
    "StoreUser",
    "Webhook",
    "WebhookEndpoint",
]
