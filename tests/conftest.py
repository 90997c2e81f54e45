# ================================
# TEST FIXTURES (tests/conftest.py)
# ================================

import os

# Must be set before app modules build the engine and settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["ENABLE_BOOKING_SWEEP"] = "false"

from datetime import date, datetime, timedelta, timezone
import uuid

import pytest
from fastapi.testclient import TestClient

from app.core.database import engine, SessionLocal
from app.models import (
    Base, Merchant, MerchantFeeProfile, PaymentInstrument, ServiceTile, ServiceApplication
)
from app.main import app

BOOKING_DATE = date(2026, 11, 2)


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"X-User-ID": str(user_id)}


@pytest.fixture
def staff_headers():
    return {"X-User-ID": str(uuid.uuid4()), "X-User-Roles": "municipal_staff"}


@pytest.fixture
def merchant(db):
    merchant = Merchant(
        customer_id=uuid.uuid4(),
        merchant_name="Springfield Parks",
        subcategory="Other",
        processor_merchant_id="MUmerchant123"
    )
    db.add(merchant)
    db.commit()
    return merchant


@pytest.fixture
def fee_profile(db, merchant):
    profile = MerchantFeeProfile(
        merchant_id=merchant.id,
        card_basis_points=290,
        card_fixed_fee_cents=30,
        ach_basis_points=100,
        ach_fixed_fee_cents=25,
        ach_basis_points_fee_limit_cents=500
    )
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def tile(db, merchant):
    tile = ServiceTile(
        customer_id=merchant.customer_id,
        merchant_id=merchant.id,
        title="Tennis Court 1",
        amount_cents=10000,
        has_time_slots=True,
        is_active=True
    )
    db.add(tile)
    db.commit()
    return tile


@pytest.fixture
def card_instrument(db, user_id):
    instrument = PaymentInstrument(
        user_id=user_id,
        processor_instrument_id="PIcard123",
        instrument_type="PAYMENT_CARD"
    )
    db.add(instrument)
    db.commit()
    return instrument


@pytest.fixture
def bank_instrument(db, user_id):
    instrument = PaymentInstrument(
        user_id=user_id,
        processor_instrument_id="PIbank123",
        instrument_type="BANK_ACCOUNT"
    )
    db.add(instrument)
    db.commit()
    return instrument


@pytest.fixture
def make_booking(db, tile, user_id):
    """Insert a booking row directly, bypassing conflict checks"""

    def _make_booking(
        start_time="09:00:00",
        end_time="10:00:00",
        status="submitted",
        created_at=None,
        booking_date=BOOKING_DATE,
        tile_id=None,
        owner_id=None,
        payment_status=None
    ):
        created_at = created_at or datetime.now(timezone.utc)
        booking = ServiceApplication(
            tile_id=tile_id or tile.id,
            user_id=owner_id or user_id,
            customer_id=tile.customer_id,
            applicant_name="Pat Resident",
            booking_date=booking_date,
            booking_start_time=start_time,
            booking_end_time=end_time,
            status=status,
            base_amount_cents=tile.amount_cents,
            payment_status=payment_status,
            created_at=created_at,
            updated_at=created_at
        )
        db.add(booking)
        db.commit()
        return booking

    return _make_booking


def minutes_ago(minutes: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


class FakeProcessor:
    """Records transfers instead of calling the processor; a reused idempotency id replays the first response"""

    def __init__(self, error=None, on_transfer=None):
        self.transfers = []
        self.calls = []
        self.error = error
        self.on_transfer = on_transfer

    async def create_transfer(self, merchant_id, source_instrument_id, amount_cents, idempotency_id, tags=None):
        self.calls.append(idempotency_id)
        if self.on_transfer:
            self.on_transfer()
        if self.error:
            raise self.error

        for transfer in self.transfers:
            if transfer["idempotency_id"] == idempotency_id:
                return transfer["response"]

        response = {"id": f"TRtransfer{123 + len(self.transfers)}", "state": "SUCCEEDED", "amount": amount_cents}
        self.transfers.append({
            "merchant": merchant_id,
            "source": source_instrument_id,
            "amount": amount_cents,
            "idempotency_id": idempotency_id,
            "response": response
        })
        return response
