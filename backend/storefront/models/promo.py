"""Promo code model."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class DiscountType(str, Enum):
    """Promo discount type enumeration."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoCode(BaseModel):
    """Read-only promo code reference data."""
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_purchase: Optional[Decimal] = None
    valid_until: datetime
    description: Optional[str] = None
    free_shipping: bool = False  # Guarantees the shipping waiver message

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("valid_until")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive expiry dates are taken as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
