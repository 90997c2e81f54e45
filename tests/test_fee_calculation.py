# ================================
# FEE ENGINE TESTS (test_fee_calculation.py)
# ================================

import uuid

import pytest

from app.core.exceptions import InvalidInputError
from app.schemas.fees import FeeSchedule, ServiceFeeRequest
from app.services.fee_calculation_service import (
    FeeCalculationService, calculate_service_fee, validate_total_amount
)


class TestCalculateServiceFee:
    """Service fee formula"""

    def test_card_default_schedule(self):
        quote = calculate_service_fee(10000, is_card=True)

        assert quote.service_fee_percentage_cents == 300
        assert quote.service_fee_fixed_cents == 50
        assert quote.total_service_fee_cents == 350
        assert quote.total_charge_cents == 10350
        assert quote.basis_points == 300
        assert quote.is_card is True

    def test_ach_percentage_is_capped(self):
        schedule = FeeSchedule(ach_basis_points=150, ach_basis_points_fee_limit_cents=100)

        quote = calculate_service_fee(10000, is_card=False, schedule=schedule)

        assert quote.service_fee_percentage_cents == 100
        assert quote.service_fee_fixed_cents == 50
        assert quote.total_service_fee_cents == 150
        assert quote.total_charge_cents == 10150

    def test_ach_cap_independent_of_amount_above_threshold(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=500)

        for base in (40000, 1_000_000, 250_000_000):
            quote = calculate_service_fee(base, is_card=False, schedule=schedule)
            assert quote.service_fee_percentage_cents == 500
            assert quote.total_service_fee_cents == 550

    def test_ach_below_cap_is_not_clamped(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=500)

        quote = calculate_service_fee(10000, is_card=False, schedule=schedule)

        assert quote.service_fee_percentage_cents == 150

    def test_cap_never_applies_to_cards(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=100)

        quote = calculate_service_fee(10000, is_card=True, schedule=schedule)

        assert quote.service_fee_percentage_cents == 300

    def test_zero_cap_means_no_cap(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=0)

        quote = calculate_service_fee(10000, is_card=False, schedule=schedule)

        assert quote.service_fee_percentage_cents == 150

    @pytest.mark.parametrize("base, is_card, expected_percentage", [
        (50, True, 2),      # 1.5 rounds up
        (250, True, 8),     # 7.5 rounds up
        (10, True, 0),      # 0.3 rounds down
        (150, False, 2),    # 2.25 rounds down
        (1, False, 0),
        (3333, True, 100),  # 99.99
    ])
    def test_percentage_rounds_half_up(self, base, is_card, expected_percentage):
        quote = calculate_service_fee(base, is_card=is_card)
        assert quote.service_fee_percentage_cents == expected_percentage

    def test_zero_amount_charges_fixed_fee_only(self):
        quote = calculate_service_fee(0, is_card=True)

        assert quote.service_fee_percentage_cents == 0
        assert quote.total_service_fee_cents == 50
        assert quote.total_charge_cents == 50

    def test_totals_are_additive_and_cover_fixed_fee(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=75)

        for base in range(0, 20000, 997):
            for is_card in (True, False):
                quote = calculate_service_fee(base, is_card=is_card, schedule=schedule)
                assert quote.total_charge_cents == base + quote.total_service_fee_cents
                assert quote.total_service_fee_cents >= quote.service_fee_fixed_cents
                assert quote.service_fee_percentage_cents >= 0

    def test_custom_schedule(self):
        schedule = FeeSchedule(card_basis_points=290, card_fixed_fee_cents=30)

        quote = calculate_service_fee(12345, is_card=True, schedule=schedule)

        assert quote.service_fee_percentage_cents == 358  # 358.005
        assert quote.total_charge_cents == 12345 + 358 + 30

    @pytest.mark.parametrize("bad_amount", [-1, 10.5, 100.0, "100", None, True])
    def test_invalid_amount_is_refused(self, bad_amount):
        with pytest.raises(InvalidInputError):
            calculate_service_fee(bad_amount, is_card=True)

    def test_negative_schedule_values_are_rejected(self):
        with pytest.raises(ValueError):
            FeeSchedule(card_basis_points=-10)


class TestValidateTotalAmount:
    """Server-side total check"""

    def test_exact_total_is_valid(self):
        for base in (1, 999, 10000, 123456):
            for is_card in (True, False):
                expected = calculate_service_fee(base, is_card=is_card).total_charge_cents
                result = validate_total_amount(base, expected, is_card)
                assert result.is_valid is True
                assert result.difference == 0

    def test_one_cent_difference_is_tolerated(self):
        result = validate_total_amount(10000, 10351, is_card=True)

        assert result.is_valid is True
        assert result.expected_total == 10350
        assert result.difference == 1

    def test_two_cent_difference_is_rejected(self):
        result = validate_total_amount(10000, 10348, is_card=True)

        assert result.is_valid is False
        assert result.expected_total == 10350
        assert result.difference == 2

    def test_uses_authoritative_schedule(self):
        schedule = FeeSchedule(ach_basis_points_fee_limit_cents=100)

        # Uncapped ACH total would be 10200
        assert validate_total_amount(10000, 10200, False, schedule).is_valid is False
        assert validate_total_amount(10000, 10150, False, schedule).is_valid is True


class TestFeeCalculationService:
    """Schedule and instrument lookups"""

    def test_merchant_schedule_is_loaded(self, db, merchant, fee_profile):
        schedule = FeeCalculationService.get_merchant_fee_schedule(db, merchant.id)

        assert schedule.card_basis_points == 290
        assert schedule.ach_fixed_fee_cents == 25
        assert schedule.ach_basis_points_fee_limit_cents == 500

    def test_missing_profile_falls_back_to_defaults(self, db, caplog):
        missing_id = uuid.uuid4()

        with caplog.at_level("WARNING"):
            schedule = FeeCalculationService.get_merchant_fee_schedule(db, missing_id)

        assert schedule == FeeSchedule()
        assert str(missing_id) in caplog.text

    def test_explicit_method_types(self, db):
        assert FeeCalculationService.resolve_is_card(db, "card") is True
        assert FeeCalculationService.resolve_is_card(db, "PAYMENT_CARD") is True
        assert FeeCalculationService.resolve_is_card(db, "BANK_ACCOUNT") is False

    def test_instrument_type_lookup(self, db, card_instrument, bank_instrument):
        assert FeeCalculationService.resolve_is_card(db, payment_instrument_id=card_instrument.id) is True
        assert FeeCalculationService.resolve_is_card(db, payment_instrument_id=bank_instrument.id) is False

    def test_unknown_instrument_is_priced_as_card(self, db, caplog):
        with caplog.at_level("WARNING"):
            assert FeeCalculationService.resolve_is_card(db, payment_instrument_id=uuid.uuid4()) is True
        assert "pricing as card" in caplog.text

    def test_tile_without_merchant_uses_customer_merchant(self, db, merchant, fee_profile):
        from app.models import ServiceTile

        tile = ServiceTile(customer_id=merchant.customer_id, title="Dog License", amount_cents=2500)
        db.add(tile)
        db.commit()

        assert FeeCalculationService.get_tile_merchant_id(db, tile.id) == merchant.id

    def test_quote_uses_tile_merchant_schedule(self, db, tile, fee_profile, bank_instrument):
        request = ServiceFeeRequest(
            base_amount_cents=10000,
            payment_instrument_id=bank_instrument.id,
            tile_id=tile.id
        )

        quote = FeeCalculationService.quote(db, request)

        assert quote.is_card is False
        assert quote.basis_points == 100
        assert quote.total_service_fee_cents == 125

    def test_quote_refuses_zero_amount(self, db):
        with pytest.raises(InvalidInputError):
            FeeCalculationService.quote(db, ServiceFeeRequest(base_amount_cents=0))
