"""
Typed failures raised by the cart engine.

Services raise these; the HTTP layer maps them onto status codes.
"""

from typing import List, Optional


class CartError(Exception):
    """Base class for cart engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CartError):
    """A referenced product, cart line or saved line does not exist."""


class InsufficientStockError(CartError):
    """Requested quantity exceeds available stock for a variant axis."""

    def __init__(self, message: str, available: Optional[int] = None):
        super().__init__(message)
        self.available = available


class OutOfStockError(InsufficientStockError):
    """A saved item can no longer be moved back into the cart."""


class ValidationError(CartError):
    """Malformed or incompatible selection, or bad promo code input."""

    def __init__(self, message: str, errors: Optional[List[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class PersistenceError(CartError):
    """Durable read or write of the cart record failed."""
