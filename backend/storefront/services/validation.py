"""
Stock and compatibility checks for variant selections.

All functions are side-effect free and total: unresolved variants produce
sentinel values (empty list, 0, False) instead of exceptions.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel

from storefront.models.product import Product, SelectedVariants, Variant

# Variant group -> selection field
SELECTION_FIELDS = {
    "colors": "color",
    "materials": "material",
    "sizes": "size",
}


class VariantError(BaseModel):
    """One problem with a variant selection."""
    field: str  # color | material | size
    message: str


def resolve_variant(product: Product, group: str, variant_id: str) -> Optional[Variant]:
    """Find a variant by ID within one of the product's variant groups."""
    if group not in SELECTION_FIELDS:
        return None
    for variant in getattr(product.variants, group):
        if variant.id == variant_id:
            return variant
    return None


def _resolve_selection(product: Product, selection: SelectedVariants) -> List[Optional[Variant]]:
    return [
        resolve_variant(product, group, getattr(selection, field))
        for group, field in SELECTION_FIELDS.items()
    ]


def validate_combination(product: Product, selection: SelectedVariants) -> List[VariantError]:
    """
    Validate that every selected variant exists and that color and material
    are compatible.

    Incompatibility may be declared on either side, so both directions are
    checked.

    Returns:
        List of errors, empty when the selection is valid
    """
    errors: List[VariantError] = []
    color, material, size = _resolve_selection(product, selection)

    if not color:
        errors.append(VariantError(field="color", message="Selected color is not available"))
    if not material:
        errors.append(VariantError(field="material", message="Selected material is not available"))
    if not size:
        errors.append(VariantError(field="size", message="Selected size is not available"))

    if color and selection.material in color.incompatible_with:
        material_name = material.name if material else selection.material
        errors.append(VariantError(
            field="material",
            message=f"{material_name} is not compatible with {color.name}"
        ))

    if material and selection.color in material.incompatible_with:
        color_name = color.name if color else selection.color
        errors.append(VariantError(
            field="color",
            message=f"{color_name} is not compatible with {material.name}"
        ))

    return errors


def available_stock(product: Product, selection: SelectedVariants) -> int:
    """A combination is only as available as its scarcest variant."""
    variants = _resolve_selection(product, selection)
    if not all(variants):
        return 0
    return min(v.stock for v in variants)


def available_stock_given_reservations(
    product: Product,
    selection: SelectedVariants,
    cart_items: Iterable = ()
) -> int:
    """
    Available stock after subtracting quantities already reserved by cart lines.

    Stock is tracked per variant, not per combination: each axis subtracts
    every line of the same product that shares that axis' variant id,
    whatever the other two axes are.
    """
    variants = _resolve_selection(product, selection)
    if not all(variants):
        return 0

    lines = [item for item in cart_items if item.product_id == product.id]
    remaining = []
    for variant, field in zip(variants, SELECTION_FIELDS.values()):
        selected_id = getattr(selection, field)
        reserved = sum(
            item.quantity for item in lines
            if getattr(item.selected_variants, field) == selected_id
        )
        remaining.append(max(0, variant.stock - reserved))

    return min(remaining)


def has_sufficient_stock(product: Product, selection: SelectedVariants, quantity: int) -> bool:
    """True when every selected variant has at least `quantity` units."""
    variants = _resolve_selection(product, selection)
    if not all(variants):
        return False
    return all(v.stock >= quantity for v in variants)


def is_incompatible(
    product: Product,
    group: str,
    variant_id: str,
    selection: SelectedVariants
) -> bool:
    """
    Check whether a candidate color or material conflicts with the other
    currently selected axis. Sizes never participate.
    """
    variant = resolve_variant(product, group, variant_id)
    if not variant:
        return False

    if group == "colors":
        return selection.material in variant.incompatible_with
    if group == "materials":
        return selection.color in variant.incompatible_with
    return False
