from datetime import datetime
from typing import List
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from storefront.models.product import SelectedVariants
from storefront.utils.helpers import get_current_timestamp, generate_line_id


class CartItem(BaseModel):
    """One product + selection + quantity line in the cart."""
    id: str = Field(default_factory=generate_line_id)
    product_id: str
    selected_variants: SelectedVariants
    quantity: int = Field(ge=1)
    added_at: datetime = Field(default_factory=get_current_timestamp)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def merge_key(self) -> tuple:
        """Lines with the same key are merged instead of duplicated."""
        return (self.product_id,) + self.selected_variants.key()


class SavedItem(CartItem):
    """A cart line parked in the save-for-later list."""
    saved_at: datetime = Field(default_factory=get_current_timestamp)


class Cart(BaseModel):
    """Persisted cart aggregate."""
    items: List[CartItem] = Field(default_factory=list)
    saved_items: List[SavedItem] = Field(default_factory=list)
    promo_codes: List[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=get_current_timestamp)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "items": [
                    {
                        "id": "1767225600000-a1b2c3d4e5",
                        "productId": "chair-001",
                        "selectedVariants": {"color": "red", "material": "matte", "size": "m"},
                        "quantity": 2,
                        "addedAt": "2026-01-01T00:00:00Z"
                    }
                ],
                "savedItems": [],
                "promoCodes": ["WELCOME10"],
                "lastUpdated": "2026-01-01T00:00:00Z"
            }
        }
