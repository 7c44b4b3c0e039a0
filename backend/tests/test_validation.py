"""
Tests for variant stock and compatibility checks.
"""
import pytest

from storefront.models.cart import CartItem
from storefront.models.product import SelectedVariants
from storefront.services.validation import (
    available_stock,
    available_stock_given_reservations,
    has_sufficient_stock,
    is_incompatible,
    resolve_variant,
    validate_combination,
)


@pytest.fixture
def chair(catalog):
    return catalog.product_by_id("chair-001")


def _line(product_id, color, material, size, quantity):
    return CartItem(
        product_id=product_id,
        selected_variants=SelectedVariants(color=color, material=material, size=size),
        quantity=quantity,
    )


class TestResolveVariant:
    """Test variant lookup."""

    def test_resolves_known_variant(self, chair):
        variant = resolve_variant(chair, "colors", "neon")
        assert variant.name == "Neon Pink"
        assert variant.stock == 3

    def test_unknown_variant(self, chair):
        assert resolve_variant(chair, "colors", "purple") is None

    def test_unknown_group(self, chair):
        assert resolve_variant(chair, "finishes", "red") is None


class TestValidateCombination:
    """Test selection validation."""

    def test_valid_selection(self, chair, red_matte_m):
        assert validate_combination(chair, red_matte_m) == []

    def test_unknown_color(self, chair):
        errors = validate_combination(chair, SelectedVariants(color="purple", material="matte", size="m"))
        assert len(errors) == 1
        assert errors[0].field == "color"
        assert "not available" in errors[0].message

    def test_all_unknown(self, chair):
        errors = validate_combination(chair, SelectedVariants(color="x", material="y", size="z"))
        assert [e.field for e in errors] == ["color", "material", "size"]

    def test_incompatibility_checked_both_ways(self, chair):
        """Neon declares wood and wood declares neon, so both sides report."""
        errors = validate_combination(chair, SelectedVariants(color="neon", material="wood", size="m"))
        assert {e.field for e in errors} == {"color", "material"}
        assert any("Wood Grain is not compatible with Neon Pink" == e.message for e in errors)

    def test_incompatibility_declared_on_one_side(self, mock_product):
        """A declaration on the material alone is enough."""
        mock_product.variants.materials[1].incompatible_with = ["blue"]
        errors = validate_combination(mock_product, SelectedVariants(color="blue", material="glossy", size="m"))
        assert len(errors) == 1
        assert errors[0].field == "color"


class TestAvailableStock:
    """Test combination stock."""

    def test_minimum_of_three_axes(self, chair, red_matte_m):
        # red 15, matte 100, m 50
        assert available_stock(chair, red_matte_m) == 15

    def test_scarce_color(self, chair):
        assert available_stock(chair, SelectedVariants(color="neon", material="matte", size="m")) == 3

    def test_unresolved_axis(self, chair):
        assert available_stock(chair, SelectedVariants(color="red", material="matte", size="xxl")) == 0


class TestAvailableStockGivenReservations:
    """Test reservation-aware stock."""

    def test_no_reservations(self, chair, red_matte_m):
        assert available_stock_given_reservations(chair, red_matte_m, []) == 15

    def test_reservations_per_axis(self, chair, red_matte_m):
        """Every line sharing an axis id reserves from that axis."""
        lines = [
            _line("chair-001", "red", "glossy", "l", 5),
            _line("chair-001", "blue", "matte", "m", 10),
        ]
        # red 15-5=10, matte 100-10=90, m 50-10=40
        assert available_stock_given_reservations(chair, red_matte_m, lines) == 10

    def test_other_products_ignored(self, chair, red_matte_m):
        lines = [_line("lamp-002", "red", "matte", "m", 14)]
        assert available_stock_given_reservations(chair, red_matte_m, lines) == 15

    def test_floored_at_zero(self, chair):
        selection = SelectedVariants(color="neon", material="matte", size="m")
        lines = [_line("chair-001", "neon", "glossy", "s", 5)]
        assert available_stock_given_reservations(chair, selection, lines) == 0

    def test_unresolved_selection(self, chair):
        selection = SelectedVariants(color="purple", material="matte", size="m")
        assert available_stock_given_reservations(chair, selection, []) == 0


class TestHasSufficientStock:
    """Test per-variant stock check."""

    def test_exactly_enough(self, chair):
        assert has_sufficient_stock(chair, SelectedVariants(color="neon", material="matte", size="m"), 3) is True

    def test_not_enough(self, chair):
        assert has_sufficient_stock(chair, SelectedVariants(color="neon", material="matte", size="m"), 4) is False

    def test_unresolved(self, chair):
        assert has_sufficient_stock(chair, SelectedVariants(color="red", material="foam", size="m"), 1) is False


class TestIsIncompatible:
    """Test option pre-disabling."""

    def test_color_against_selected_material(self, chair):
        selection = SelectedVariants(color="red", material="wood", size="m")
        assert is_incompatible(chair, "colors", "neon", selection) is True
        assert is_incompatible(chair, "colors", "blue", selection) is False

    def test_material_against_selected_color(self, chair):
        selection = SelectedVariants(color="neon", material="matte", size="m")
        assert is_incompatible(chair, "materials", "wood", selection) is True
        assert is_incompatible(chair, "materials", "glossy", selection) is False

    def test_sizes_never_incompatible(self, chair):
        selection = SelectedVariants(color="neon", material="wood", size="m")
        assert is_incompatible(chair, "sizes", "l", selection) is False

    def test_unknown_candidate(self, chair, red_matte_m):
        assert is_incompatible(chair, "colors", "purple", red_matte_m) is False
