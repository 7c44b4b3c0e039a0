from decimal import Decimal
from pydantic import BaseModel


class PriceBreakdown(BaseModel):
    """Priced order derived from cart contents. Never persisted."""
    base_price: Decimal = Decimal("0")
    variant_modifiers: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    quantity_discount: Decimal = Decimal("0")
    bundle_discount: Decimal = Decimal("0")
    promo_discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    item_count: int = 0

    @property
    def discounted_subtotal(self) -> Decimal:
        """Subtotal after quantity, bundle and promo discounts."""
        return self.subtotal - self.quantity_discount - self.bundle_discount - self.promo_discount
