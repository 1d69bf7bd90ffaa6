from app.repositories.api_key_repository import ApiKeyRepository
from app.repositories.invoice_repository import InvoiceRepository
from app.repositories.payment_request_repository import PaymentRequestRepository
from app.repositories.store_repository import StoreRepository
from app.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from app.repositories.webhook_repository import WebhookRepository

__all__ = [
    "ApiKeyRepository",
    "InvoiceRepository",
    "PaymentRequestRepository",
    "StoreRepository",
    "WebhookEndpointRepository",
    "WebhookRepository",
]
