import logging
from typing import Any

from arq import cron

from app.core.database import SessionLocal
from app.services.invoice_service import InvoiceService
from app.services.webhook_service import WebhookService
from app.tasks import redis_settings

logger = logging.getLogger(__name__)


async def expire_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: move new invoices past their expiration time to expired.

    Runs every minute. An expired invoice stops being reused by payment
    requests, so the next pay attempt creates a fresh one.
    """
    db = SessionLocal()
    try:
        service = InvoiceService(db)
        count = service.expire_invoices()
        if count > 0:
            logger.info("Expired %d invoices", count)
        return count
    finally:
        db.close()


async def deliver_pending_webhooks_task(ctx: dict[str, Any]) -> int:
    """Background task: deliver webhooks queued by the event forwarders."""
    db = SessionLocal()
    try:
        service = WebhookService(db)
        count = service.deliver_pending_webhooks()
        if count > 0:
            logger.info("Delivered %d pending webhooks", count)
        return count
    finally:
        db.close()


async def retry_failed_webhooks_task(ctx: dict[str, Any]) -> int:
    """Background task: retry failed webhooks with exponential backoff.

    Runs every 5 minutes to find failed webhooks eligible for retry
    and re-delivers them.
    """
    db = SessionLocal()
    try:
        service = WebhookService(db)
        count = service.retry_failed_webhooks()
        if count > 0:
            logger.info("Retried %d failed webhooks", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        expire_invoices_task,
        deliver_pending_webhooks_task,
        retry_failed_webhooks_task,
    ]
    cron_jobs = [
        cron(expire_invoices_task, second=0),  # every minute
        cron(deliver_pending_webhooks_task, second=30),  # every minute
        cron(
            retry_failed_webhooks_task,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
        ),
    ]
    redis_settings = redis_settings
