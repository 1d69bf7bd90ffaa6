"""PaymentRequest repository for data access."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.models.payment_request import PaymentRequest
from app.models.store_user import StoreUser

ORDER_ID_PREFIX = "PAY_REQUEST_"
INTERNAL_TAG_PREFIX = "PAYREQ#"


def get_order_id_for_payment_request(request_id: UUID | str) -> str:
    """Order id given to every invoice created for a payment request."""
    return f"{ORDER_ID_PREFIX}{request_id}"


def get_internal_tag(request_id: UUID | str) -> str:
    """Internal invoice tag linking an invoice back to its payment request."""
    return f"{INTERNAL_TAG_PREFIX}{request_id}"


def parse_payment_request_order_id(order_id: str | None) -> UUID | None:
    """Recover the payment request id from an order id, if it follows the convention."""
    if not order_id or not order_id.startswith(ORDER_ID_PREFIX):
        return None
    try:
        return UUID(order_id[len(ORDER_ID_PREFIX):])
    except ValueError:
        return None


class PaymentRequestRepository:
    """Repository for PaymentRequest model."""

    def __init__(self, db: Session):
        self.db = db

    def _user_scope(self, query: Query, user_id: UUID) -> Query:  # type: ignore[type-arg]
        return query.join(StoreUser, StoreUser.store_id == PaymentRequest.store_id).filter(
            StoreUser.user_id == user_id
        )

    def find(self, request_id: UUID, user_id: UUID | None = None) -> PaymentRequest | None:
        """Get a payment request by ID.

        When ``user_id`` is given the request must belong to one of the user's
        stores, otherwise it is treated as missing.
        """
        query = self.db.query(PaymentRequest).filter(PaymentRequest.id == request_id)
        if user_id is not None:
            query = self._user_scope(query, user_id)
        return query.first()

    def find_payment_requests(
        self,
        user_id: UUID,
        skip: int = 0,
        count: int = 50,
        include_archived: bool = False,
    ) -> tuple[list[PaymentRequest], int]:
        """Get a page of the user's payment requests, newest first, and the total."""
        query = self._user_scope(self.db.query(PaymentRequest), user_id)
        if not include_archived:
            query = query.filter(PaymentRequest.archived.is_(False))

        total = query.with_entities(func.count(PaymentRequest.id)).scalar() or 0
        items = (
            query.order_by(PaymentRequest.created.desc(), PaymentRequest.id.asc())
            .offset(skip)
            .limit(count)
            .all()
        )
        return items, total

    def save(self, payment_request: PaymentRequest) -> PaymentRequest:
        """Insert or update a payment request."""
        self.db.add(payment_request)
        self.db.commit()
        self.db.refresh(payment_request)
        return payment_request
