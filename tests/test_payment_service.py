# ================================
# PAYMENT SERVICE TESTS (test_payment_service.py)
# ================================

import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import AppException, PaymentProcessorError
from app.models import ServiceApplication
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentService

from conftest import BOOKING_DATE, FakeProcessor, minutes_ago


def authorize(db, processor, application_id, instrument, user_id, total=10320, idempotency_id=None):
    return asyncio.run(PaymentService.authorize_application_payment(
        db=db,
        processor=processor,
        application_id=application_id,
        payment_instrument_id=instrument.id,
        provided_total_cents=total,
        user_id=user_id,
        idempotency_id=idempotency_id
    ))


class TestPaymentRetries:
    """A transfer is requested at most once per recorded idempotency id"""

    def test_retry_after_lost_commit_charges_once(self, db, make_booking, fee_profile, card_instrument, user_id):
        booking_id = make_booking(status="draft").id
        processor = FakeProcessor()
        real_commit = db.commit
        commits = []

        def commit_fails_after_transfer():
            commits.append(True)
            if len(commits) == 2:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            real_commit()

        with patch.object(db, "commit", side_effect=commit_fails_after_transfer):
            with pytest.raises(OperationalError):
                authorize(db, processor, booking_id, card_instrument, user_id)

        db.expire_all()
        stuck = db.get(ServiceApplication, booking_id)
        assert stuck.status == "draft"
        assert stuck.payment_status == "pending"
        assert stuck.payment_idempotency_id == processor.calls[0]

        application = authorize(db, processor, booking_id, card_instrument, user_id)

        assert application.status == "submitted"
        assert application.processor_transfer_id == "TRtransfer123"
        assert processor.calls == [stuck.payment_idempotency_id] * 2
        assert len(processor.transfers) == 1
        assert [h.to_status for h in application.status_history] == ["submitted"]

    def test_unknown_outcome_keeps_payment_pending(self, db, make_booking, fee_profile, card_instrument, user_id):
        booking_id = make_booking(status="draft", created_at=minutes_ago(45)).id
        unreachable = FakeProcessor(error=PaymentProcessorError(
            "Failed to connect to payment processor", error_code="PROCESSOR_UNAVAILABLE"
        ))

        with pytest.raises(PaymentProcessorError):
            authorize(db, unreachable, booking_id, card_instrument, user_id)

        db.expire_all()
        assert db.get(ServiceApplication, booking_id).payment_status == "pending"
        # Not abandoned while the transfer may have gone through
        assert BookingService.sweep_abandoned_bookings(db).expired_count == 0

        processor = FakeProcessor()
        application = authorize(db, processor, booking_id, card_instrument, user_id)

        assert application.status == "submitted"
        assert processor.calls == unreachable.calls

    def test_different_key_while_payment_pending_is_refused(
        self, db, make_booking, fee_profile, card_instrument, user_id
    ):
        booking = make_booking(status="draft", payment_status="pending")
        booking.payment_idempotency_id = "checkout-first"
        booking.total_amount_cents = 10320
        db.commit()
        processor = FakeProcessor()

        with pytest.raises(AppException) as exc_info:
            authorize(db, processor, booking.id, card_instrument, user_id, idempotency_id="checkout-second")

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "PAYMENT_IN_PROGRESS"
        assert processor.calls == []


class TestLockingAroundTransfer:

    def test_no_transaction_is_open_during_the_transfer(
        self, db, tile, make_booking, fee_profile, card_instrument, user_id
    ):
        booking_id = make_booking("09:00:00", "10:00:00", status="draft", created_at=minutes_ago(45)).id
        seen = {}

        def inspect_database():
            seen["in_transaction"] = db.in_transaction()
            seen["payment_status"] = db.get(ServiceApplication, booking_id).payment_status
            seen["slot_held"] = BookingService.check_conflict(
                db, tile.id, BOOKING_DATE, "09:30:00", "10:30:00"
            ).has_conflict

        application = authorize(db, FakeProcessor(on_transfer=inspect_database), booking_id, card_instrument, user_id)

        assert seen == {"in_transaction": False, "payment_status": "pending", "slot_held": True}
        assert application.status == "submitted"
        assert application.payment_status == "succeeded"
