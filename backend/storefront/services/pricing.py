"""
Pricing engine.

Pure arithmetic turning cart lines into a priced order. Everything is
computed in full Decimal precision; rounding to cents is left to the display
boundary (see storefront.utils.helpers.format_price).

Promo codes are passed in already resolved; this module never looks them up.
"""

from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from storefront.models.cart import CartItem
from storefront.models.pricing import PriceBreakdown
from storefront.models.product import Product, SelectedVariants
from storefront.models.promo import DiscountType, PromoCode
from storefront.services.validation import SELECTION_FIELDS, resolve_variant
from storefront.utils.helpers import to_decimal

ProductLookup = Callable[[str], Optional[Product]]

ZERO = Decimal("0")

# Quantity discount, evaluated per cart line
QUANTITY_DISCOUNT_THRESHOLD = 5
QUANTITY_DISCOUNT_RATE = Decimal("0.10")

# Bundle discount
BUNDLE_MIN_LINES = 3
BUNDLE_MIN_UNITS = 3
BUNDLE_DISCOUNT_RATE = Decimal("0.15")

TAX_RATE = Decimal("0.08")

SHIPPING_COST = Decimal("10")
FREE_SHIPPING_THRESHOLD = Decimal("75")


def variant_modifiers(product: Product, selection: SelectedVariants) -> Decimal:
    """Sum of the selected variants' price modifiers; unresolved variants add 0."""
    total = ZERO
    for group, field in SELECTION_FIELDS.items():
        variant = resolve_variant(product, group, getattr(selection, field))
        if variant:
            total += variant.price_modifier
    return total


def unit_price(product: Product, selection: SelectedVariants) -> Decimal:
    return product.base_price + variant_modifiers(product, selection)


def line_subtotal(product: Product, selection: SelectedVariants, quantity: int) -> Decimal:
    return unit_price(product, selection) * quantity


def calculate_quantity_discount(subtotal, quantity: int) -> Decimal:
    """10% off a line of 5 or more units."""
    if quantity >= QUANTITY_DISCOUNT_THRESHOLD:
        return to_decimal(subtotal) * QUANTITY_DISCOUNT_RATE
    return ZERO


def calculate_product_price(
    product: Product,
    selection: SelectedVariants,
    quantity: int = 1
) -> Decimal:
    """Price of one cart line after its quantity discount."""
    subtotal = line_subtotal(product, selection, quantity)
    return subtotal - calculate_quantity_discount(subtotal, quantity)


def _resolve_lines(
    items: Iterable[CartItem],
    product_lookup: ProductLookup
) -> List[Tuple[CartItem, Product]]:
    """Pair cart lines with their products, dropping lines that no longer resolve."""
    lines = []
    for item in items:
        product = product_lookup(item.product_id)
        if product is not None:
            lines.append((item, product))
    return lines


def _bundle_discount_for_lines(lines: Sequence[Tuple[CartItem, Product]]) -> Decimal:
    if len(lines) < BUNDLE_MIN_LINES:
        return ZERO

    eligible: Set[str] = set()
    for _, product in lines:
        if product.bundle_eligible:
            eligible.add(product.id)
            eligible.update(product.bundle_eligible)

    bundle_units = 0
    bundle_subtotal = ZERO
    for item, product in lines:
        if product.id in eligible:
            bundle_units += item.quantity
            bundle_subtotal += calculate_product_price(product, item.selected_variants, item.quantity)

    if bundle_units >= BUNDLE_MIN_UNITS:
        return bundle_subtotal * BUNDLE_DISCOUNT_RATE
    return ZERO


def calculate_bundle_discount(items: Iterable[CartItem], product_lookup: ProductLookup) -> Decimal:
    """
    15% off the bundle-eligible part of the cart.

    Requires at least 3 cart lines. The eligible set is every bundle-eligible
    product in the cart plus its declared partners; the discount applies when
    eligible lines hold 3 or more units in total.
    """
    return _bundle_discount_for_lines(_resolve_lines(items, product_lookup))


def calculate_promo_discount(subtotal, promo_code: Optional[PromoCode] = None) -> Decimal:
    """Discount for a single promo code. Fixed discounts never exceed the subtotal."""
    if not promo_code:
        return ZERO

    subtotal = to_decimal(subtotal)
    if promo_code.discount_type == DiscountType.PERCENTAGE:
        return subtotal * (promo_code.discount_value / Decimal("100"))
    if promo_code.discount_type == DiscountType.FIXED:
        return min(promo_code.discount_value, subtotal)
    return ZERO


def apply_promo_codes(subtotal, promo_codes: Sequence[PromoCode] = ()) -> Decimal:
    """
    Total discount of several promo codes, applied in order against the
    progressively discounted subtotal.
    """
    running = to_decimal(subtotal)
    total = ZERO
    for promo in promo_codes:
        discount = calculate_promo_discount(running, promo)
        total += discount
        running -= discount
    return total


def calculate_tax(amount) -> Decimal:
    """Flat 8% tax."""
    return to_decimal(amount) * TAX_RATE


def calculate_shipping(amount, promo_codes: Sequence[PromoCode] = ()) -> Decimal:
    """
    $10 flat rate, free at $75 or more after discounts.

    A free-shipping code guarantees the waiver at the same threshold; it does
    not lower it.
    """
    amount = to_decimal(amount)
    if any(p.free_shipping for p in promo_codes) and amount >= FREE_SHIPPING_THRESHOLD:
        return ZERO
    return ZERO if amount >= FREE_SHIPPING_THRESHOLD else SHIPPING_COST


def calculate_cart_summary(
    items: Iterable[CartItem],
    promo_codes: Sequence[PromoCode],
    product_lookup: ProductLookup
) -> PriceBreakdown:
    """
    Price the whole cart.

    Lines whose product no longer resolves are skipped. Discounts stack in
    the order quantity, bundle, promo; tax and shipping are computed on the
    fully discounted subtotal.
    """
    lines = _resolve_lines(items, product_lookup)

    base_price = ZERO
    modifiers = ZERO
    quantity_discount = ZERO
    item_count = 0

    for item, product in lines:
        item_count += item.quantity
        base_price += product.base_price * item.quantity
        modifiers += variant_modifiers(product, item.selected_variants) * item.quantity
        quantity_discount += calculate_quantity_discount(
            line_subtotal(product, item.selected_variants, item.quantity),
            item.quantity
        )

    subtotal = base_price + modifiers
    after_quantity = subtotal - quantity_discount

    bundle_discount = _bundle_discount_for_lines(lines)
    after_bundle = after_quantity - bundle_discount

    promo_discount = apply_promo_codes(after_bundle, promo_codes)
    discounted = after_bundle - promo_discount

    tax = calculate_tax(discounted)
    shipping = calculate_shipping(discounted, promo_codes)

    return PriceBreakdown(
        base_price=base_price,
        variant_modifiers=modifiers,
        subtotal=subtotal,
        quantity_discount=quantity_discount,
        bundle_discount=bundle_discount,
        promo_discount=promo_discount,
        tax=tax,
        shipping=shipping,
        total=discounted + tax + shipping,
        item_count=item_count,
    )
