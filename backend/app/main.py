import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from app.core.config import settings
from app.core.events import event_aggregator
from app.routers import invoices, payment_requests, stores, webhook_endpoints
from app.services.webhook_service import register_webhook_forwarding

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Stores", "description": "Create and list the stores the caller manages."},
    {
        "name": "Payment Requests",
        "description": "Publish payment requests and let payers settle them through invoices.",
    },
    {"name": "Invoices", "description": "Invoice checkout view, payments and invalidation."},
    {"name": "Webhooks", "description": "Manage webhook endpoints and inspect deliveries."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    subscriptions = register_webhook_forwarding(event_aggregator)
    logger.info("Registered %d event subscribers", len(subscriptions))
    try:
        yield
    finally:
        for subscription in subscriptions:
            event_aggregator.unsubscribe(subscription)
        event_aggregator.shutdown()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Payment request API. Merchants publish requests for payment; payers "
        "settle them through time-boxed invoices."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(stores.router, prefix="/stores", tags=["Stores"])
app.include_router(
    payment_requests.router,
    prefix="/payment-requests",
    tags=["Payment Requests"],
)
app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
app.include_router(
    webhook_endpoints.router,
    prefix="/webhook-endpoints",
    tags=["Webhooks"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
