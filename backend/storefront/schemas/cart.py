from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from storefront.models.cart import Cart, CartItem, SavedItem
from storefront.models.pricing import PriceBreakdown
from storefront.models.product import SelectedVariants
from storefront.utils.helpers import round_price


class AddToCartRequest(BaseModel):
    """Schema for adding a configured product to cart."""
    product_id: str
    selected_variants: SelectedVariants
    quantity: int = Field(default=1, gt=0)

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "chair-001",
                "selected_variants": {"color": "red", "material": "matte", "size": "m"},
                "quantity": 2
            }
        }


class UpdateCartItemRequest(BaseModel):
    """Schema for updating cart item quantity. Zero removes the line."""
    quantity: int = Field(ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "quantity": 3
            }
        }


class ApplyPromoRequest(BaseModel):
    """Schema for applying a promo code."""
    code: str = Field(min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "WELCOME10"
            }
        }


class PriceBreakdownResponse(BaseModel):
    """Price breakdown rounded to cents for display."""
    base_price: float
    variant_modifiers: float
    subtotal: float
    quantity_discount: float
    bundle_discount: float
    promo_discount: float
    tax: float
    shipping: float
    total: float
    item_count: int

    @classmethod
    def from_breakdown(cls, breakdown: PriceBreakdown) -> "PriceBreakdownResponse":
        money = {
            name: float(round_price(getattr(breakdown, name)))
            for name in (
                "base_price", "variant_modifiers", "subtotal", "quantity_discount",
                "bundle_discount", "promo_discount", "tax", "shipping", "total",
            )
        }
        return cls(item_count=breakdown.item_count, **money)


class CartResponse(BaseModel):
    """Schema for cart response."""
    items: List[CartItem]
    saved_items: List[SavedItem]
    promo_codes: List[str]
    last_updated: Optional[datetime] = None
    summary: PriceBreakdownResponse

    @classmethod
    def from_cart(cls, cart: Cart, breakdown: PriceBreakdown) -> "CartResponse":
        return cls(
            items=cart.items,
            saved_items=cart.saved_items,
            promo_codes=cart.promo_codes,
            last_updated=cart.last_updated,
            summary=PriceBreakdownResponse.from_breakdown(breakdown),
        )


class StockResponse(BaseModel):
    """Schema for remaining stock of a variant combination."""
    product_id: str
    selected_variants: SelectedVariants
    available: int
