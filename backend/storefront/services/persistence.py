"""
Cart persistence.

One record, keyed by CART_RECORD_KEY, holds the whole cart aggregate as
JSON-compatible data. The codec below is the only place that knows about
older record layouts.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from storefront.core.exceptions import PersistenceError
from storefront.models.cart import Cart

logger = logging.getLogger(__name__)

CART_RECORD_KEY = "current"


def _normalize_promo_codes(codes: List[Any]) -> List[str]:
    normalized: List[str] = []
    for code in codes:
        if not isinstance(code, str) or not code.strip():
            continue
        code = code.strip().upper()
        if code not in normalized:
            normalized.append(code)
    return normalized


def migrate_cart_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade a stored record to the current layout.

    - a legacy single `promoCode` string is folded into `promoCodes`
    - saved items written without `addedAt` take their `savedAt`
    - promo codes are uppercased and de-duplicated, keeping order
    """
    record = copy.deepcopy(record)

    promo_codes = list(record.get("promoCodes") or [])
    legacy_code = record.pop("promoCode", None)
    if legacy_code:
        promo_codes.append(legacy_code)
    record["promoCodes"] = _normalize_promo_codes(promo_codes)

    saved_items = record.get("savedItems") or []
    for saved in saved_items:
        if not saved.get("addedAt") and saved.get("savedAt"):
            saved["addedAt"] = saved["savedAt"]
    record["savedItems"] = saved_items
    record["items"] = record.get("items") or []

    return record


def dump_cart(cart: Cart) -> Dict[str, Any]:
    """Serialize a cart to its JSON-compatible record."""
    return cart.model_dump(mode="json", by_alias=True)


def load_cart(record: Dict[str, Any]) -> Cart:
    """Deserialize a stored record, migrating older layouts first."""
    return Cart.model_validate(migrate_cart_record(record))


class CartStorage(Protocol):
    """Durable key-value storage for the single cart record."""

    async def put(self, record: Dict[str, Any]) -> None:
        ...

    async def get(self) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self) -> None:
        ...


class InMemoryCartStorage:
    """
    Process-local storage.

    Records are kept as JSON text so every reader gets an independent copy.
    Several stores may share one instance to act as separate contexts over
    the same durable record.
    """

    def __init__(self):
        self._records: Dict[str, str] = {}

    async def put(self, record: Dict[str, Any]) -> None:
        try:
            self._records[CART_RECORD_KEY] = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cart record is not serializable: {e}") from e

    async def get(self) -> Optional[Dict[str, Any]]:
        raw = self._records.get(CART_RECORD_KEY)
        if raw is None:
            return None
        return json.loads(raw)

    async def delete(self) -> None:
        self._records.pop(CART_RECORD_KEY, None)


class MongoCartStorage:
    """Cart record stored as one MongoDB document."""

    def __init__(self, collection: AsyncIOMotorCollection, key: str = CART_RECORD_KEY):
        self.collection = collection
        self.key = key

    async def put(self, record: Dict[str, Any]) -> None:
        document = dict(record)
        document["_id"] = self.key
        try:
            await self.collection.replace_one({"_id": self.key}, document, upsert=True)
        except PyMongoError as e:
            logger.error(f"Failed to write cart record {self.key}: {e}")
            raise PersistenceError("Failed to save cart") from e

    async def get(self) -> Optional[Dict[str, Any]]:
        try:
            document = await self.collection.find_one({"_id": self.key})
        except PyMongoError as e:
            logger.error(f"Failed to read cart record {self.key}: {e}")
            raise PersistenceError("Failed to load cart") from e

        if not document:
            return None
        document.pop("_id", None)
        return document

    async def delete(self) -> None:
        try:
            await self.collection.delete_one({"_id": self.key})
        except PyMongoError as e:
            logger.error(f"Failed to delete cart record {self.key}: {e}")
            raise PersistenceError("Failed to clear cart") from e
