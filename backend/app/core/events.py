"""In-process publish/subscribe event aggregator.

Handlers are registered per event class. ``publish`` hands every handler
to a thread pool and returns immediately, so a slow or failing subscriber
never blocks the publisher or the other subscribers. Failures are logged
and otherwise dropped: delivery is fire-and-forget.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any
from uuid import UUID

from app.core.config import settings

logger = logging.getLogger(__name__)


class InvoiceEventCode(IntEnum):
    """Numeric reason codes carried by invoice events."""

    CREATED = 1001
    RECEIVED_PAYMENT = 1002
    PAID_IN_FULL = 1003
    EXPIRED = 1004
    CONFIRMED = 1005
    COMPLETED = 1006
    MARKED_INVALID = 1008

    @property
    def event_name(self) -> str:
        return f"invoice.{self.name.lower()}"


@dataclass(frozen=True)
class PaymentRequestUpdated:
    """A payment request was created or saved."""

    payment_request_id: UUID
    store_id: UUID
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InvoiceEvent:
    """An invoice changed state."""

    invoice_id: UUID
    store_id: UUID
    event_code: InvoiceEventCode
    order_id: str | None = None

    @property
    def name(self) -> str:
        return self.event_code.event_name


Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Subscription:
    event_type: type
    handler: Handler


class EventAggregator:
    """Topic-per-event-type bus with isolated, non-blocking dispatch."""

    def __init__(self, max_workers: int = 4):
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: set[Future[None]] = set()
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="events",
                )
            return self._executor

    def subscribe(self, event_type: type, handler: Handler) -> Subscription:
        with self._lock:
            self._subscribers[event_type].append(handler)
        return Subscription(event_type=event_type, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            handlers = self._subscribers.get(subscription.event_type, [])
            if subscription.handler in handlers:
                handlers.remove(subscription.handler)

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))

    def publish(self, event: Any) -> None:
        """Queue ``event`` for every subscriber of its type. Never raises."""
        with self._lock:
            handlers = list(self._subscribers.get(type(event), []))
        if not handlers:
            logger.debug("No subscribers for %s", type(event).__name__)
            return

        for handler in handlers:
            try:
                future = self._get_executor().submit(self._run, handler, event)
            except Exception:
                logger.exception(
                    "Failed to publish %s to %s",
                    type(event).__name__,
                    getattr(handler, "__qualname__", handler),
                )
                continue
            with self._lock:
                self._pending.add(future)
            future.add_done_callback(self._forget)

    @staticmethod
    def _run(handler: Handler, event: Any) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Subscriber %s failed handling %s",
                getattr(handler, "__qualname__", handler),
                type(event).__name__,
            )

    def _forget(self, future: Future[None]) -> None:
        with self._lock:
            self._pending.discard(future)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued delivery has run. Returns False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)


event_aggregator = EventAggregator(max_workers=settings.EVENT_WORKERS)


def get_event_aggregator() -> EventAggregator:
    """FastAPI dependency returning the application event aggregator."""
    return event_aggregator
