from fastapi import APIRouter, Depends, status

from storefront.api.deps import get_cart_store, get_promo_registry, to_http_exception
from storefront.core.exceptions import CartError
from storefront.data.promo_codes import PromoCodeRegistry
from storefront.models.product import SelectedVariants
from storefront.schemas.cart import (
    AddToCartRequest,
    ApplyPromoRequest,
    CartResponse,
    StockResponse,
    UpdateCartItemRequest,
)
from storefront.services.cart_service import CartStore

router = APIRouter()


def _cart_response(store: CartStore, promo_registry: PromoCodeRegistry) -> CartResponse:
    return CartResponse.from_cart(store.snapshot(), store.price_breakdown(promo_registry))


@router.get("", response_model=CartResponse)
async def get_cart(
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Get the cart with its price breakdown.

    Returns:
    - Cart lines and saved items
    - Active promo codes
    - Subtotal, discounts, tax, shipping and total
    """
    try:
        await store.load_from_storage()
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: AddToCartRequest,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Add a configured product to the cart.

    Validates:
    - Product exists
    - Variants exist and are compatible
    - Sufficient stock available

    If the same configuration is already in the cart, increases its quantity.
    """
    try:
        await store.add_item(request.product_id, request.selected_variants, request.quantity)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.put("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: str,
    request: UpdateCartItemRequest,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Update the quantity of a cart line.

    Validates stock availability before updating. A quantity of 0 removes the line.
    """
    try:
        await store.update_quantity(item_id, request.quantity)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_from_cart(
    item_id: str,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Remove a line from the cart.
    """
    try:
        await store.remove_item(item_id)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Clear cart lines, saved items and promo codes.
    """
    try:
        await store.clear_cart()
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.post("/items/{item_id}/save", response_model=CartResponse)
async def save_for_later(
    item_id: str,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Move a cart line to the saved-for-later list.
    """
    try:
        await store.save_for_later(item_id)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.post("/saved/{saved_item_id}/move", response_model=CartResponse)
async def move_to_cart(
    saved_item_id: str,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Move a saved item back into the cart.

    Fails when stock can no longer cover the saved quantity.
    """
    try:
        await store.move_to_cart(saved_item_id)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.delete("/saved/{saved_item_id}", response_model=CartResponse)
async def remove_saved_item(
    saved_item_id: str,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Remove an item from the saved-for-later list.
    """
    try:
        await store.remove_saved_item(saved_item_id)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.post("/promo", response_model=CartResponse)
async def apply_promo_code(
    request: ApplyPromoRequest,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Apply a promo code.

    Validates:
    - Code exists
    - Code has not expired
    - Cart subtotal meets the minimum purchase
    """
    try:
        await store.redeem_promo_code(request.code, promo_registry)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.delete("/promo/{code}", response_model=CartResponse)
async def remove_promo_code(
    code: str,
    store: CartStore = Depends(get_cart_store),
    promo_registry: PromoCodeRegistry = Depends(get_promo_registry)
):
    """
    Remove an applied promo code.
    """
    try:
        await store.remove_promo_code(code)
    except CartError as e:
        raise to_http_exception(e)
    return _cart_response(store, promo_registry)


@router.get("/products/{product_id}/stock", response_model=StockResponse)
async def get_available_stock(
    product_id: str,
    color: str,
    material: str,
    size: str,
    store: CartStore = Depends(get_cart_store)
):
    """
    Get how many more units of a combination can be added, given what the
    cart already holds.
    """
    selection = SelectedVariants(color=color, material=material, size=size)
    try:
        await store.load_from_storage()
        available = store.available_stock_for(product_id, selection)
    except CartError as e:
        raise to_http_exception(e)
    return StockResponse(product_id=product_id, selected_variants=selection, available=available)
