from fastapi import HTTPException, Request, status

from storefront.core.exceptions import (
    CartError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from storefront.data.promo_codes import PromoCodeRegistry
from storefront.services.cart_service import CartStore


async def get_cart_store(request: Request) -> CartStore:
    """Dependency to get the cart store built at startup."""
    store = getattr(request.app.state, "cart_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cart store is not ready"
        )
    return store


async def get_promo_registry(request: Request) -> PromoCodeRegistry:
    """Dependency to get the promo code registry."""
    return request.app.state.promo_registry


def to_http_exception(error: CartError) -> HTTPException:
    """
    Map a cart engine error onto an HTTP error.

    - NotFoundError -> 404
    - InsufficientStockError / OutOfStockError -> 409
    - ValidationError -> 422
    - PersistenceError -> 503
    """
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)

    if isinstance(error, InsufficientStockError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": error.message, "available": error.available}
        )

    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": error.message, "errors": error.errors}
        )

    if isinstance(error, PersistenceError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=error.message)

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
