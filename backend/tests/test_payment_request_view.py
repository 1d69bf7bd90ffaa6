"""Tests for the derived payment request view."""

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from app.models.invoice import InvoiceStatus
from app.models.payment_request import PaymentRequest, PaymentRequestBlob
from app.services.payment_request_view import (
    InvoicePaymentSnapshot,
    InvoiceSnapshot,
    PaymentRequestStatus,
    amount_collected,
    compute_view,
    find_cancellable_invoice,
    is_expired,
    settled_amount,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _record(
    amount: str = "100",
    expiry_date: datetime | None = None,
    archived: bool = False,
    allow_custom: bool = False,
) -> PaymentRequest:
    record = PaymentRequest(
        id=uuid.uuid4(),
        store_id=uuid.uuid4(),
        archived=archived,
        created=NOW - timedelta(days=1),
    )
    record.set_blob(
        PaymentRequestBlob(
            title="Consulting",
            email="payer@example.com",
            amount=Decimal(amount),
            currency="USD",
            expiry_date=expiry_date,
            allow_custom_payment_amounts=allow_custom,
        )
    )
    return record


def _invoice(
    status: InvoiceStatus = InvoiceStatus.NEW,
    price: str = "100",
    paid: str = "0",
    expires_in: timedelta = timedelta(minutes=15),
    payments: tuple[str, ...] = (),
) -> InvoiceSnapshot:
    return InvoiceSnapshot(
        id=uuid.uuid4(),
        status=status,
        price=Decimal(price),
        currency="USD",
        amount_paid=Decimal(paid),
        created_at=NOW - timedelta(minutes=1),
        expires_at=NOW + expires_in,
        payments=tuple(
            InvoicePaymentSnapshot(amount=Decimal(p), received_at=NOW) for p in payments
        ),
    )


class TestSettledAmount:
    def test_invalid_invoice_covers_nothing(self):
        inv = _invoice(status=InvoiceStatus.INVALID, paid="40", payments=("40",))
        assert settled_amount(inv) == Decimal("0")

    def test_other_statuses_cover_amount_paid(self):
        for status in (
            InvoiceStatus.NEW,
            InvoiceStatus.PAID,
            InvoiceStatus.CONFIRMED,
            InvoiceStatus.COMPLETE,
            InvoiceStatus.EXPIRED,
        ):
            assert settled_amount(_invoice(status=status, paid="25")) == Decimal("25")

    def test_amount_collected_sums_non_invalid(self):
        invoices = [
            _invoice(status=InvoiceStatus.PAID, paid="30"),
            _invoice(status=InvoiceStatus.INVALID, paid="50"),
            _invoice(status=InvoiceStatus.EXPIRED, paid="10"),
        ]
        assert amount_collected(invoices) == Decimal("40")

    def test_amount_collected_empty(self):
        assert amount_collected([]) == Decimal("0")


class TestIsExpired:
    def test_no_expiry_never_expires(self):
        assert is_expired(None, NOW) is False

    def test_expiry_in_future(self):
        assert is_expired(NOW + timedelta(seconds=1), NOW) is False

    def test_expiry_reached_exactly(self):
        assert is_expired(NOW, NOW) is True

    def test_expiry_in_past(self):
        assert is_expired(NOW - timedelta(days=1), NOW) is True


class TestComputeView:
    def test_fresh_request_owes_full_amount(self):
        view = compute_view(_record(), [], NOW)

        assert view.amount_due == Decimal("100")
        assert view.amount_collected == Decimal("0")
        assert view.is_settled is False
        assert view.is_expired is False
        assert view.status == PaymentRequestStatus.PENDING
        assert view.any_pending_invoice is False
        assert view.open_invoice is None
        assert view.invoices == ()

    def test_partial_payment_reduces_amount_due(self):
        invoices = [_invoice(status=InvoiceStatus.PAID, price="40", paid="40")]
        view = compute_view(_record(), invoices, NOW)
        assert view.amount_due == Decimal("60")
        assert view.is_settled is False

    def test_overpayment_clamps_amount_due_at_zero(self):
        invoices = [_invoice(status=InvoiceStatus.PAID, price="100", paid="120")]
        view = compute_view(_record(), invoices, NOW)
        assert view.amount_due == Decimal("0")
        assert view.amount_collected == Decimal("120")
        assert view.is_settled is True
        assert view.status == PaymentRequestStatus.COMPLETED

    def test_invalidated_invoice_releases_its_amount(self):
        paid = _invoice(status=InvoiceStatus.NEW, price="100", paid="30", payments=("30",))
        before = compute_view(_record(), [paid], NOW)

        invalidated = InvoiceSnapshot(
            id=paid.id,
            status=InvoiceStatus.INVALID,
            price=paid.price,
            currency=paid.currency,
            amount_paid=paid.amount_paid,
            created_at=paid.created_at,
            expires_at=paid.expires_at,
            payments=paid.payments,
        )
        after = compute_view(_record(), [invalidated], NOW)

        assert before.amount_due == Decimal("70")
        assert after.amount_due == Decimal("100")

    def test_expired_request(self):
        view = compute_view(_record(expiry_date=NOW - timedelta(hours=1)), [], NOW)
        assert view.is_expired is True
        assert view.status == PaymentRequestStatus.EXPIRED

    def test_settled_wins_over_expired(self):
        invoices = [_invoice(status=InvoiceStatus.COMPLETE, paid="100")]
        view = compute_view(_record(expiry_date=NOW - timedelta(hours=1)), invoices, NOW)
        assert view.is_expired is True
        assert view.status == PaymentRequestStatus.COMPLETED

    def test_zero_amount_request_is_settled(self):
        view = compute_view(_record(amount="0"), [], NOW)
        assert view.is_settled is True

    def test_open_invoice_detected(self):
        open_inv = _invoice(status=InvoiceStatus.NEW)
        view = compute_view(_record(), [open_inv], NOW)
        assert view.any_pending_invoice is True
        assert view.pending_invoice_has_payments is False
        assert view.open_invoice == open_inv

    def test_open_invoice_with_partial_payment(self):
        open_inv = _invoice(status=InvoiceStatus.NEW, paid="10", payments=("10",))
        view = compute_view(_record(), [open_inv], NOW)
        assert view.pending_invoice_has_payments is True
        assert view.amount_due == Decimal("90")

    def test_new_invoice_past_expiry_is_not_open(self):
        stale = _invoice(status=InvoiceStatus.NEW, expires_in=timedelta(minutes=-1))
        view = compute_view(_record(), [stale], NOW)
        assert view.open_invoice is None
        assert view.any_pending_invoice is False

    def test_non_new_invoices_are_not_open(self):
        invoices = [
            _invoice(status=InvoiceStatus.PAID, paid="10"),
            _invoice(status=InvoiceStatus.EXPIRED),
            _invoice(status=InvoiceStatus.INVALID),
        ]
        view = compute_view(_record(), invoices, NOW)
        assert view.open_invoice is None

    def test_first_open_invoice_in_given_order_is_reused(self):
        newer = _invoice(status=InvoiceStatus.NEW)
        older = _invoice(status=InvoiceStatus.NEW)
        view = compute_view(_record(), [newer, older], NOW)
        assert view.open_invoice == newer

    def test_naive_now_is_treated_as_utc(self):
        view = compute_view(
            _record(expiry_date=NOW),
            [],
            NOW.replace(tzinfo=None),
        )
        assert view.is_expired is True

    def test_record_fields_are_copied(self):
        record = _record(archived=True, allow_custom=True)
        view = compute_view(record, [], NOW)
        assert view.id == record.id
        assert view.store_id == record.store_id
        assert view.archived is True
        assert view.allow_custom_payment_amounts is True
        assert view.title == "Consulting"
        assert view.email == "payer@example.com"
        assert view.currency == "USD"

    def test_pure_and_repeatable(self):
        record = _record()
        invoices = [_invoice(status=InvoiceStatus.PAID, paid="25")]
        assert compute_view(record, invoices, NOW) == compute_view(record, invoices, NOW)


class TestFindCancellableInvoice:
    def test_single_unpaid_new_invoice(self):
        inv = _invoice(status=InvoiceStatus.NEW)
        assert find_cancellable_invoice([inv]) == inv

    def test_none_when_no_invoices(self):
        assert find_cancellable_invoice([]) is None

    def test_none_when_new_invoice_has_payments(self):
        inv = _invoice(status=InvoiceStatus.NEW, paid="5", payments=("5",))
        assert find_cancellable_invoice([inv]) is None

    def test_none_when_ambiguous(self):
        invoices = [_invoice(status=InvoiceStatus.NEW), _invoice(status=InvoiceStatus.NEW)]
        assert find_cancellable_invoice(invoices) is None

    def test_ignores_other_statuses(self):
        new = _invoice(status=InvoiceStatus.NEW)
        invoices = [
            _invoice(status=InvoiceStatus.INVALID),
            new,
            _invoice(status=InvoiceStatus.EXPIRED),
        ]
        assert find_cancellable_invoice(invoices) == new
