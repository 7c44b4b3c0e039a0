"""
Static promo code table and eligibility checks.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from storefront.models.promo import PromoCode
from storefront.utils.helpers import get_current_timestamp, to_decimal

logger = logging.getLogger(__name__)


PROMO_CODE_DATA: List[dict] = [
    {
        "code": "WELCOME10",
        "discount_type": "percentage",
        "discount_value": 10,
        "min_purchase": 50,
        "valid_until": "2080-12-31T23:59:59Z",
        "description": "10% off your first order over $50",
    },
    {
        "code": "SAVE25",
        "discount_type": "fixed",
        "discount_value": 25,
        "min_purchase": 100,
        "valid_until": "2080-12-30T23:59:59Z",
        "description": "$25 off orders over $100",
    },
    {
        "code": "FREESHIP",
        "discount_type": "fixed",
        "discount_value": 10,
        "min_purchase": 75,
        "valid_until": "2080-12-31T23:59:59Z",
        "description": "Free shipping on orders over $75",
        "free_shipping": True,
    },
]


class PromoCodeRegistry:
    """Case-insensitive promo code lookup and validation."""

    def __init__(self, promo_codes: Optional[List[PromoCode]] = None):
        if promo_codes is None:
            promo_codes = [PromoCode.model_validate(data) for data in PROMO_CODE_DATA]
        self._codes: Dict[str, PromoCode] = {p.code: p for p in promo_codes}

    def lookup(self, code: str) -> Optional[PromoCode]:
        """Get a promo code by its code string, ignoring case."""
        if not code:
            return None
        return self._codes.get(code.strip().upper())

    def validate(
        self,
        code: str,
        subtotal,
        now: Optional[datetime] = None
    ) -> Optional[PromoCode]:
        """
        Check that a code exists, has not expired and that the subtotal
        meets its minimum purchase.

        Returns:
            The PromoCode when eligible, None otherwise
        """
        promo = self.lookup(code)
        if not promo:
            logger.info(f"Promo code {code!r} not found")
            return None

        now = now or get_current_timestamp()
        if promo.valid_until < now:
            logger.info(f"Promo code {promo.code} expired at {promo.valid_until.isoformat()}")
            return None

        if promo.min_purchase is not None and to_decimal(subtotal) < promo.min_purchase:
            logger.info(f"Promo code {promo.code} requires a minimum purchase of {promo.min_purchase}")
            return None

        return promo

    def resolve_active(self, codes: List[str], now: Optional[datetime] = None) -> List[PromoCode]:
        """Resolve applied codes in order, dropping unknown and expired ones."""
        now = now or get_current_timestamp()
        resolved = []
        for code in codes:
            promo = self.lookup(code)
            if promo and promo.valid_until >= now:
                resolved.append(promo)
        return resolved

    def all(self) -> List[PromoCode]:
        return list(self._codes.values())
