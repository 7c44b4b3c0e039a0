"""
Tests for promo code lookup and eligibility.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.data.promo_codes import PromoCodeRegistry
from storefront.models.promo import DiscountType, PromoCode


@pytest.fixture
def expired_registry():
    return PromoCodeRegistry([
        PromoCode(
            code="OLD5",
            discount_type="fixed",
            discount_value=5,
            valid_until=datetime(2020, 1, 1, tzinfo=timezone.utc),
        ),
        PromoCode(
            code="NEW5",
            discount_type="fixed",
            discount_value=5,
            valid_until=datetime(2080, 1, 1, tzinfo=timezone.utc),
        ),
    ])


class TestPromoCodeModel:
    """Test promo code model."""

    def test_code_uppercased(self):
        promo = PromoCode(
            code=" summer5 ",
            discount_type="percentage",
            discount_value=5,
            valid_until=datetime(2080, 1, 1, tzinfo=timezone.utc),
        )
        assert promo.code == "SUMMER5"
        assert promo.discount_type == DiscountType.PERCENTAGE

    def test_camel_case_fields_accepted(self):
        promo = PromoCode.model_validate({
            "code": "X",
            "discountType": "fixed",
            "discountValue": 3,
            "minPurchase": 20,
            "validUntil": "2080-01-01T00:00:00Z",
        })
        assert promo.min_purchase == Decimal("20")


class TestLookup:
    """Test case-insensitive lookup."""

    def test_lookup_ignores_case(self, promo_registry):
        assert promo_registry.lookup("welcome10").code == "WELCOME10"
        assert promo_registry.lookup("  Save25 ").code == "SAVE25"

    def test_unknown(self, promo_registry):
        assert promo_registry.lookup("NOPE") is None
        assert promo_registry.lookup("") is None

    def test_reference_table(self, promo_registry):
        codes = {p.code for p in promo_registry.all()}
        assert codes == {"WELCOME10", "SAVE25", "FREESHIP"}
        assert promo_registry.lookup("FREESHIP").free_shipping is True
        assert promo_registry.lookup("SAVE25").free_shipping is False


class TestValidate:
    """Test eligibility checks."""

    def test_meets_minimum(self, promo_registry):
        assert promo_registry.validate("WELCOME10", Decimal("50")).code == "WELCOME10"

    def test_below_minimum(self, promo_registry):
        assert promo_registry.validate("WELCOME10", Decimal("49.99")) is None
        assert promo_registry.validate("SAVE25", 99.99) is None

    def test_unknown_code(self, promo_registry):
        assert promo_registry.validate("BOGUS", Decimal("1000")) is None

    def test_expired_code(self, expired_registry):
        assert expired_registry.validate("OLD5", Decimal("100")) is None
        assert expired_registry.validate("NEW5", Decimal("100")) is not None

    def test_expiry_against_given_time(self, promo_registry):
        after = datetime(2081, 1, 1, tzinfo=timezone.utc)
        assert promo_registry.validate("WELCOME10", Decimal("100"), now=after) is None


class TestResolveActive:
    """Test resolving applied codes for pricing."""

    def test_keeps_order(self, promo_registry):
        promos = promo_registry.resolve_active(["SAVE25", "WELCOME10"])
        assert [p.code for p in promos] == ["SAVE25", "WELCOME10"]

    def test_drops_unknown_and_expired(self, expired_registry):
        promos = expired_registry.resolve_active(["OLD5", "GONE", "NEW5"])
        assert [p.code for p in promos] == ["NEW5"]


class TestNaiveExpiry:
    """Test expiry dates given without a timezone."""

    def test_naive_expiry_taken_as_utc(self):
        promo = PromoCode(code="X", discount_type="fixed", discount_value=5, valid_until=datetime(2080, 1, 1))
        assert promo.valid_until.tzinfo == timezone.utc

    def test_naive_expiry_validates(self):
        registry = PromoCodeRegistry([
            PromoCode(code="X", discount_type="fixed", discount_value=5, valid_until=datetime(2080, 1, 1)),
            PromoCode(code="Y", discount_type="fixed", discount_value=5, valid_until=datetime(2020, 1, 1)),
        ])

        assert registry.validate("X", 100).code == "X"
        assert registry.validate("Y", 100) is None
        assert [p.code for p in registry.resolve_active(["X", "Y"])] == ["X"]
