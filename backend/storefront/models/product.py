from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Variant(BaseModel):
    """One selectable option within a variant group."""
    id: str
    name: str
    price_modifier: Decimal = Decimal("0")
    stock: int = Field(ge=0)
    hex: Optional[str] = None  # For color variants
    incompatible_with: List[str] = Field(default_factory=list)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProductVariants(BaseModel):
    """The three independent variant groups of a product."""
    colors: List[Variant] = Field(default_factory=list)
    materials: List[Variant] = Field(default_factory=list)
    sizes: List[Variant] = Field(default_factory=list)


class Product(BaseModel):
    """Catalog product."""
    id: str
    name: str
    description: str = ""
    base_price: Decimal = Field(ge=0)
    rating: float = 0.0
    review_count: int = 0
    variants: ProductVariants
    bundle_eligible: Optional[List[str]] = None  # Partner product IDs
    category: Optional[str] = None
    brand: Optional[str] = None
    origin: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SelectedVariants(BaseModel):
    """Exactly one chosen variant id per group."""
    color: str
    material: str
    size: str

    def key(self) -> tuple:
        return (self.color, self.material, self.size)
