"""Tests for PaymentRequestService: save, archive, pay and cancel."""

import threading
import time
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from app.core.database import get_db
from app.core.events import EventAggregator, InvoiceEvent, InvoiceEventCode, PaymentRequestUpdated
from app.models.invoice import InvoiceStatus
from app.models.shared import utc_now
from app.repositories.payment_request_repository import (
    get_internal_tag,
    get_order_id_for_payment_request,
)
from app.repositories.store_repository import StoreRepository
from app.schemas.payment_request import PaymentRequestUpdate
from app.schemas.store import StoreCreate
from app.services import payment_request_service as prs_module
from app.services.invoice_service import InvoiceService, PaymentProcessingError
from app.services.payment_request_service import (
    CancelRejectedError,
    NoStoreError,
    OperationTimeoutError,
    PaymentRequestNotFoundError,
    PaymentRequestService,
    PaymentRequestValidationError,
    PayRejectedError,
    PayRejection,
)
from app.services.payment_request_view import InvoiceSnapshot
from tests.conftest import DEFAULT_USER_ID, OTHER_USER_ID


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def events():
    return MagicMock(spec=EventAggregator)


@pytest.fixture
def store(db_session):
    return StoreRepository(db_session).create(StoreCreate(name="Main Street"), DEFAULT_USER_ID)


@pytest.fixture
def service(db_session, events):
    return PaymentRequestService(db_session, events)


@pytest.fixture
def invoice_service(db_session, events):
    return InvoiceService(db_session, events)


def _fields(store, **overrides) -> PaymentRequestUpdate:
    data = {
        "store_id": store.id,
        "title": "Website redesign",
        "description": "Second milestone",
        "email": "payer@example.com",
        "amount": Decimal("100"),
        "currency": "USD",
    }
    data.update(overrides)
    return PaymentRequestUpdate(**data)


@pytest.fixture
def payment_request(service, store, events):
    pr = service.save(None, DEFAULT_USER_ID, _fields(store))
    events.reset_mock()
    return pr


def _published(events, event_type):
    return [c.args[0] for c in events.publish.call_args_list if isinstance(c.args[0], event_type)]


class TestSave:
    def test_create_sets_created_and_blob(self, service, store):
        before = utc_now()
        pr = service.save(None, DEFAULT_USER_ID, _fields(store, currency="usd"))

        assert pr.id is not None
        assert pr.store_id == store.id
        assert pr.archived is False
        assert pr.created.replace(tzinfo=UTC) >= before.replace(microsecond=0)
        blob = pr.get_blob()
        assert blob.title == "Website redesign"
        assert blob.amount == Decimal("100")
        assert blob.currency == "USD"
        assert blob.version == 1

    def test_create_publishes_updated_event(self, service, store, events):
        pr = service.save(None, DEFAULT_USER_ID, _fields(store))

        published = _published(events, PaymentRequestUpdated)
        assert len(published) == 1
        assert published[0].payment_request_id == pr.id
        assert published[0].store_id == store.id
        assert published[0].data["title"] == "Website redesign"
        assert published[0].data["amount"] == "100"

    def test_update_replaces_blob_wholesale(self, service, store, payment_request):
        updated = service.save(
            payment_request.id,
            DEFAULT_USER_ID,
            _fields(store, title="Renamed", description=None, email=None, amount=Decimal("80")),
        )

        assert updated.id == payment_request.id
        blob = updated.get_blob()
        assert blob.title == "Renamed"
        assert blob.description is None
        assert blob.email is None
        assert blob.amount == Decimal("80")

    def test_update_keeps_created(self, service, store, payment_request):
        created = payment_request.created
        updated = service.save(payment_request.id, DEFAULT_USER_ID, _fields(store, title="Again"))
        assert updated.created == created

    def test_invalid_currency(self, service, store):
        with pytest.raises(PaymentRequestValidationError) as exc:
            service.save(None, DEFAULT_USER_ID, _fields(store, currency="XYZ"))
        assert "currency" in exc.value.errors

    def test_foreign_store_rejected(self, service, store, db_session):
        other = StoreRepository(db_session).create(StoreCreate(name="Elsewhere"), OTHER_USER_ID)
        with pytest.raises(PaymentRequestValidationError) as exc:
            service.save(None, DEFAULT_USER_ID, _fields(other))
        assert "store_id" in exc.value.errors

    def test_validation_failure_publishes_nothing(self, service, store, events):
        with pytest.raises(PaymentRequestValidationError):
            service.save(None, DEFAULT_USER_ID, _fields(store, currency="nope"))
        events.publish.assert_not_called()

    def test_unknown_id(self, service, store):
        with pytest.raises(PaymentRequestNotFoundError):
            service.save(uuid.uuid4(), DEFAULT_USER_ID, _fields(store))

    def test_other_users_request_is_not_found(self, service, store, payment_request):
        with pytest.raises(PaymentRequestNotFoundError):
            service.save(payment_request.id, OTHER_USER_ID, _fields(store))

    def test_cannot_edit_archived_with_archived_flag(self, service, store, payment_request):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)

        with pytest.raises(PaymentRequestValidationError) as exc:
            service.save(payment_request.id, DEFAULT_USER_ID, _fields(store, archived=True))
        assert "archived" in exc.value.errors

    def test_archived_request_can_be_unarchived_through_edit(self, service, store, payment_request):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)

        pr = service.save(payment_request.id, DEFAULT_USER_ID, _fields(store, archived=False))
        assert pr.archived is False

    def test_archiving_via_edit_on_unarchived_request(self, service, store, payment_request):
        pr = service.save(payment_request.id, DEFAULT_USER_ID, _fields(store, archived=True))
        assert pr.archived is True

    def test_publish_failure_does_not_fail_save(self, db_session, store):
        aggregator = EventAggregator(max_workers=1)
        aggregator.subscribe(PaymentRequestUpdated, MagicMock(side_effect=RuntimeError("boom")))
        try:
            pr = PaymentRequestService(db_session, aggregator).save(
                None, DEFAULT_USER_ID, _fields(store)
            )
            assert aggregator.wait_idle(timeout=5)
        finally:
            aggregator.shutdown()
        assert pr.id is not None


class TestToggleArchive:
    def test_archive_and_unarchive(self, service, payment_request):
        archived = service.toggle_archive(payment_request.id, DEFAULT_USER_ID)
        assert archived.archived is True

        unarchived = service.toggle_archive(payment_request.id, DEFAULT_USER_ID)
        assert unarchived.archived is False

    def test_keeps_other_fields(self, service, payment_request):
        before = payment_request.get_blob()
        after = service.toggle_archive(payment_request.id, DEFAULT_USER_ID).get_blob()
        assert after == before

    def test_publishes_updated_event(self, service, payment_request, events):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)
        published = _published(events, PaymentRequestUpdated)
        assert len(published) == 1
        assert published[0].data["archived"] is True

    def test_not_found(self, service):
        with pytest.raises(PaymentRequestNotFoundError):
            service.toggle_archive(uuid.uuid4(), DEFAULT_USER_ID)

    def test_other_user_not_found(self, service, payment_request):
        with pytest.raises(PaymentRequestNotFoundError):
            service.toggle_archive(payment_request.id, OTHER_USER_ID)


class TestPay:
    def test_creates_invoice_for_amount_due(self, service, invoice_service, payment_request):
        invoice_id = service.pay(payment_request.id, base_url="https://pay.example.com")

        invoice = invoice_service.get_invoice(invoice_id)
        assert invoice.status == InvoiceStatus.NEW.value
        assert Decimal(str(invoice.price)) == Decimal("100")
        assert invoice.currency == "USD"
        assert invoice.store_id == payment_request.store_id
        assert invoice.buyer_email == "payer@example.com"
        assert invoice.order_id == get_order_id_for_payment_request(payment_request.id)
        assert invoice.redirect_url == (
            f"https://pay.example.com/payment-requests/{payment_request.id}"
        )
        assert invoice_service.invoice_repo.get_tags(invoice_id) == [
            get_internal_tag(payment_request.id)
        ]

    def test_publishes_invoice_created(self, service, payment_request, events):
        invoice_id = service.pay(payment_request.id)
        published = _published(events, InvoiceEvent)
        assert [e.event_code for e in published] == [InvoiceEventCode.CREATED]
        assert published[0].invoice_id == invoice_id

    def test_does_not_mutate_the_request(self, service, payment_request, db_session):
        blob_before = dict(payment_request.blob)
        service.pay(payment_request.id)
        db_session.refresh(payment_request)
        assert payment_request.blob == blob_before
        assert payment_request.archived is False

    def test_second_pay_reuses_open_invoice(self, service, payment_request):
        first = service.pay(payment_request.id)
        second = service.pay(payment_request.id)
        assert first == second
        assert len(service.get_view(payment_request.id).invoices) == 1

    def test_pay_cancel_pay_scenario(self, service, invoice_service, payment_request):
        x = service.pay(payment_request.id)
        assert service.pay(payment_request.id) == x

        service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)
        assert invoice_service.get_invoice(x).status == InvoiceStatus.INVALID.value

        y = service.pay(payment_request.id)
        assert y != x
        assert Decimal(str(invoice_service.get_invoice(y).price)) == Decimal("100")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_invalid_amount(self, service, payment_request, amount):
        with pytest.raises(PayRejectedError) as exc:
            service.pay(payment_request.id, amount)
        assert exc.value.reason == PayRejection.INVALID_AMOUNT
        assert str(exc.value) == "Please provide an amount greater than 0"

    def test_invalid_amount_checked_before_existence(self, service):
        with pytest.raises(PayRejectedError) as exc:
            service.pay(uuid.uuid4(), Decimal("0"))
        assert exc.value.reason == PayRejection.INVALID_AMOUNT

    def test_not_found(self, service):
        with pytest.raises(PaymentRequestNotFoundError):
            service.pay(uuid.uuid4())

    def test_archived(self, service, payment_request):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)
        with pytest.raises(PayRejectedError) as exc:
            service.pay(payment_request.id)
        assert exc.value.reason == PayRejection.ARCHIVED

    def test_archived_checked_before_settled(self, service, invoice_service, payment_request):
        invoice_id = service.pay(payment_request.id)
        invoice_service.record_payment(invoice_id, Decimal("100"))
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)

        with pytest.raises(PayRejectedError) as exc:
            service.pay(payment_request.id)
        assert exc.value.reason == PayRejection.ARCHIVED

    def test_already_settled(self, service, invoice_service, payment_request):
        invoice_id = service.pay(payment_request.id)
        invoice_service.record_payment(invoice_id, Decimal("100"))

        with pytest.raises(PayRejectedError) as exc:
            service.pay(payment_request.id)
        assert exc.value.reason == PayRejection.ALREADY_SETTLED

    def test_settled_checked_before_expired(self, service, invoice_service, store, payment_request):
        invoice_id = service.pay(payment_request.id)
        invoice_service.record_payment(invoice_id, Decimal("100"))
        service.save(
            payment_request.id,
            DEFAULT_USER_ID,
            _fields(store, expiry_date=datetime.now(UTC) - timedelta(days=1)),
        )

        with pytest.raises(PayRejectedError) as exc:
            service.pay(payment_request.id)
        assert exc.value.reason == PayRejection.ALREADY_SETTLED

    def test_expired(self, service, store):
        pr = service.save(
            None,
            DEFAULT_USER_ID,
            _fields(store, expiry_date=datetime.now(UTC) - timedelta(minutes=1)),
        )
        with pytest.raises(PayRejectedError) as exc:
            service.pay(pr.id)
        assert exc.value.reason == PayRejection.EXPIRED

    def test_future_expiry_is_payable(self, service, store):
        pr = service.save(
            None,
            DEFAULT_USER_ID,
            _fields(store, expiry_date=datetime.now(UTC) + timedelta(days=1)),
        )
        assert service.pay(pr.id) is not None

    def test_custom_amount_allowed(self, service, invoice_service, store):
        pr = service.save(
            None, DEFAULT_USER_ID, _fields(store, allow_custom_payment_amounts=True)
        )
        invoice_id = service.pay(pr.id, Decimal("30"))
        assert Decimal(str(invoice_service.get_invoice(invoice_id).price)) == Decimal("30")

    def test_custom_amount_capped_at_amount_due(self, service, invoice_service, store):
        pr = service.save(
            None, DEFAULT_USER_ID, _fields(store, allow_custom_payment_amounts=True)
        )
        invoice_id = service.pay(pr.id, Decimal("250"))
        assert Decimal(str(invoice_service.get_invoice(invoice_id).price)) == Decimal("100")

    def test_custom_amount_after_settled_partial_invoice(self, service, invoice_service, store):
        pr = service.save(
            None,
            DEFAULT_USER_ID,
            _fields(store, amount=Decimal("50"), allow_custom_payment_amounts=True),
        )
        first = service.pay(pr.id, Decimal("20"))
        assert Decimal(str(invoice_service.get_invoice(first).price)) == Decimal("20")
        invoice_service.record_payment(first, Decimal("20"))

        second = service.pay(pr.id, Decimal("40"))

        assert second != first
        assert Decimal(str(invoice_service.get_invoice(second).price)) == Decimal("30")
        assert service.get_view(pr.id).amount_due == Decimal("30")

    def test_custom_amount_ignored_when_not_allowed(
        self, service, invoice_service, payment_request
    ):
        invoice_id = service.pay(payment_request.id, Decimal("30"))
        assert Decimal(str(invoice_service.get_invoice(invoice_id).price)) == Decimal("100")

    def test_new_invoice_covers_remaining_after_partial_payment(
        self, service, invoice_service, payment_request
    ):
        first = service.pay(payment_request.id)
        invoice_service.record_payment(first, Decimal("40"))
        # still new and open: reused
        assert service.pay(payment_request.id) == first

        invoice_service.expire_invoices(now=utc_now() + timedelta(hours=1))
        second = service.pay(payment_request.id)

        assert second != first
        assert Decimal(str(invoice_service.get_invoice(second).price)) == Decimal("60")

    def test_expired_invoice_without_sweep_is_not_reused(
        self, service, invoice_service, payment_request, db_session
    ):
        first = service.pay(payment_request.id)
        invoice = invoice_service.get_invoice(first)
        invoice.expires_at = utc_now() - timedelta(seconds=1)
        db_session.commit()

        assert service.pay(payment_request.id) != first

    def test_processing_error_propagates(self, service, store):
        pr = service.save(None, DEFAULT_USER_ID, _fields(store, amount=Decimal("5000000")))
        with pytest.raises(PaymentProcessingError):
            service.pay(pr.id)
        assert service.get_view(pr.id).invoices == ()

    def test_deadline_already_passed(self, service, payment_request):
        with pytest.raises(OperationTimeoutError):
            service.pay(payment_request.id, deadline=utc_now() - timedelta(seconds=1))
        assert service.get_view(payment_request.id).invoices == ()

    def test_retry_after_timeout_creates_single_invoice(self, service, payment_request):
        with pytest.raises(OperationTimeoutError):
            service.pay(payment_request.id, deadline=utc_now() - timedelta(seconds=1))

        first = service.pay(payment_request.id)
        assert service.pay(payment_request.id) == first
        assert len(service.get_view(payment_request.id).invoices) == 1

    def test_lock_wait_honours_deadline(self, service, payment_request):
        with prs_module._pay_locks.hold(str(payment_request.id)):
            with pytest.raises(OperationTimeoutError):
                service.pay(
                    payment_request.id,
                    deadline=utc_now() + timedelta(milliseconds=50),
                )


class TestConcurrentPay:
    def test_concurrent_pay_creates_one_invoice(self):
        """Concurrent callers see the invoice created by the first one."""
        request_id = uuid.uuid4()
        invoice_id = uuid.uuid4()
        created: list[uuid.UUID] = []
        open_invoice = InvoiceSnapshot(
            id=invoice_id,
            status=InvoiceStatus.NEW,
            price=Decimal("100"),
            currency="USD",
            amount_paid=Decimal("0"),
            created_at=utc_now(),
            expires_at=utc_now() + timedelta(minutes=15),
        )

        def fake_view(_request_id, *args, **kwargs):
            view = MagicMock(
                archived=False,
                amount_due=Decimal("100"),
                is_expired=False,
                allow_custom_payment_amounts=False,
                currency="USD",
                email=None,
                store_id=uuid.uuid4(),
            )
            view.open_invoice = open_invoice if created else None
            return view

        def slow_create(*args, **kwargs):
            time.sleep(0.05)
            created.append(invoice_id)
            return MagicMock(id=invoice_id)

        service = PaymentRequestService(MagicMock(), MagicMock(spec=EventAggregator))
        service.invoice_service = MagicMock()
        service.invoice_service.create_invoice.side_effect = slow_create
        results: list[uuid.UUID] = []

        with patch.object(service, "get_view", side_effect=fake_view):
            threads = [
                threading.Thread(target=lambda: results.append(service.pay(request_id)))
                for _ in range(5)
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=5)

        assert results == [invoice_id] * 5
        assert service.invoice_service.create_invoice.call_count == 1


class TestCancelPendingInvoice:
    def test_cancels_single_new_invoice(self, service, invoice_service, payment_request, events):
        invoice_id = service.pay(payment_request.id)
        events.reset_mock()

        cancelled = service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)

        assert cancelled == invoice_id
        assert invoice_service.get_invoice(invoice_id).status == InvoiceStatus.INVALID.value
        published = _published(events, InvoiceEvent)
        assert len(published) == 1
        assert published[0].event_code == InvoiceEventCode.MARKED_INVALID
        assert published[0].name == "invoice.marked_invalid"
        assert published[0].order_id == get_order_id_for_payment_request(payment_request.id)

    def test_releases_amount_due(self, service, payment_request):
        service.pay(payment_request.id)
        service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)
        view = service.get_view(payment_request.id)
        assert view.amount_due == Decimal("100")
        assert view.any_pending_invoice is False

    def test_no_invoice(self, service, payment_request):
        with pytest.raises(CancelRejectedError) as exc:
            service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)
        assert str(exc.value) == "No unpaid pending invoice to cancel"

    def test_invoice_with_payment_cannot_be_cancelled(
        self, service, invoice_service, payment_request
    ):
        invoice_id = service.pay(payment_request.id)
        invoice_service.record_payment(invoice_id, Decimal("10"))

        with pytest.raises(CancelRejectedError):
            service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)

    def test_paid_invoice_cannot_be_cancelled(self, service, invoice_service, payment_request):
        invoice_id = service.pay(payment_request.id)
        invoice_service.record_payment(invoice_id, Decimal("100"))

        with pytest.raises(CancelRejectedError):
            service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)

    def test_cancel_twice(self, service, payment_request):
        service.pay(payment_request.id)
        service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)
        with pytest.raises(CancelRejectedError):
            service.cancel_pending_invoice(payment_request.id, DEFAULT_USER_ID)

    def test_other_user_not_found(self, service, payment_request):
        service.pay(payment_request.id)
        with pytest.raises(PaymentRequestNotFoundError):
            service.cancel_pending_invoice(payment_request.id, OTHER_USER_ID)


class TestArchivingKeepsOpenInvoice:
    def test_open_invoice_survives_archival(self, service, invoice_service, payment_request):
        invoice_id = service.pay(payment_request.id)
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)

        assert invoice_service.get_invoice(invoice_id).status == InvoiceStatus.NEW.value
        invoice_service.record_payment(invoice_id, Decimal("100"))
        assert service.get_view(payment_request.id).is_settled is True


class TestEditModel:
    def test_blank_form_lists_stores(self, service, store):
        model = service.get_edit_model(None, DEFAULT_USER_ID)
        assert model.id is None
        assert [s.id for s in model.stores] == [store.id]

    def test_existing_request(self, service, payment_request):
        model = service.get_edit_model(payment_request.id, DEFAULT_USER_ID)
        assert model.id == payment_request.id
        assert model.title == "Website redesign"
        assert model.amount == Decimal("100")
        assert model.currency == "USD"

    def test_no_store(self, service):
        with pytest.raises(NoStoreError):
            service.get_edit_model(None, OTHER_USER_ID)

    def test_unknown_request(self, service, store):
        with pytest.raises(PaymentRequestNotFoundError):
            service.get_edit_model(uuid.uuid4(), DEFAULT_USER_ID)

    def test_clone(self, service, payment_request):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)
        model = service.get_clone_model(payment_request.id, DEFAULT_USER_ID)
        assert model.id is None
        assert model.archived is False
        assert model.title == "Clone of Website redesign"
        assert model.amount == Decimal("100")


class TestList:
    def test_newest_first_and_paginated(self, service, store):
        ids = [
            service.save(None, DEFAULT_USER_ID, _fields(store, title=f"Request {i}")).id
            for i in range(3)
        ]
        items, total = service.list_payment_requests(DEFAULT_USER_ID, skip=0, count=2)
        assert total == 3
        assert [pr.id for pr in items] == [ids[2], ids[1]]

        items, _ = service.list_payment_requests(DEFAULT_USER_ID, skip=2, count=2)
        assert [pr.id for pr in items] == [ids[0]]

    def test_archived_excluded_by_default(self, service, payment_request):
        service.toggle_archive(payment_request.id, DEFAULT_USER_ID)

        items, total = service.list_payment_requests(DEFAULT_USER_ID)
        assert items == []
        assert total == 0

        items, total = service.list_payment_requests(DEFAULT_USER_ID, include_archived=True)
        assert total == 1

    def test_owner_scoped(self, service, payment_request):
        items, total = service.list_payment_requests(OTHER_USER_ID)
        assert items == []
        assert total == 0
