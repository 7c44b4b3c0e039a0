"""
Cart store - owns the cart aggregate and mediates every mutation.

Each mutation validates against the catalog, builds a new aggregate, persists
it, commits it in memory only after the write succeeded, and finally
notifies other contexts. Failures leave both views untouched.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Set, Union

from storefront.core.exceptions import (
    CartError,
    InsufficientStockError,
    NotFoundError,
    OutOfStockError,
    PersistenceError,
    ValidationError,
)
from storefront.data.products import Catalog
from storefront.data.promo_codes import PromoCodeRegistry
from storefront.models.cart import Cart, CartItem, SavedItem
from storefront.models.pricing import PriceBreakdown
from storefront.models.product import Product, SelectedVariants
from storefront.services.persistence import CartStorage, dump_cart, load_cart
from storefront.services.pricing import calculate_cart_summary
from storefront.services.sync import BaseSyncChannel, SyncMessage, SyncMessageType
from storefront.services.validation import (
    available_stock,
    available_stock_given_reservations,
    has_sufficient_stock,
    validate_combination,
)
from storefront.utils.helpers import generate_line_id, get_current_timestamp

logger = logging.getLogger(__name__)


class CartState(str, Enum):
    """Store lifecycle."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class StockPolicy(str, Enum):
    """How requested quantities are checked against catalog stock."""
    RESERVATION_AWARE = "reservation_aware"  # subtract other cart lines' reservations
    PER_VARIANT = "per_variant"  # compare against raw catalog stock only


class CartStore:
    """Cart state machine over one persisted cart record."""

    def __init__(
        self,
        catalog: Catalog,
        storage: CartStorage,
        channel: Optional[BaseSyncChannel] = None,
        stock_policy: StockPolicy = StockPolicy.RESERVATION_AWARE
    ):
        self.catalog = catalog
        self.storage = storage
        self.channel = channel
        self.stock_policy = StockPolicy(stock_policy)

        self._cart = Cart()
        self._state = CartState.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        self._mutation_lock = asyncio.Lock()
        self._unsubscribe = None
        self._pending_syncs: Set[asyncio.Task] = set()
        # Bumped by every CART_CLEARED; a read started before a clear is stale
        self._clear_generation = 0

    # Read access

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == CartState.READY

    @property
    def items(self) -> List[CartItem]:
        return [item.model_copy(deep=True) for item in self._cart.items]

    @property
    def saved_items(self) -> List[SavedItem]:
        return [item.model_copy(deep=True) for item in self._cart.saved_items]

    @property
    def promo_codes(self) -> List[str]:
        return list(self._cart.promo_codes)

    def snapshot(self) -> Cart:
        """Copy of the committed cart aggregate."""
        return self._cart.model_copy(deep=True)

    def price_breakdown(self, promo_registry: Optional[PromoCodeRegistry] = None) -> PriceBreakdown:
        """
        Price the committed cart.

        Active codes are resolved through the registry; unknown or expired
        codes contribute nothing.
        """
        promos = promo_registry.resolve_active(self._cart.promo_codes) if promo_registry else []
        return calculate_cart_summary(self._cart.items, promos, self.catalog.product_by_id)

    def available_stock_for(
        self,
        product_id: str,
        selection: Union[SelectedVariants, dict],
        exclude_item_id: Optional[str] = None
    ) -> int:
        """Units of a combination still available given what the cart already holds."""
        product = self._get_product(product_id)
        selection = SelectedVariants.model_validate(selection)
        others = [item for item in self._cart.items if item.id != exclude_item_id]
        return available_stock_given_reservations(product, selection, others)

    # Lifecycle

    def start(self) -> None:
        """Listen for changes made by other contexts."""
        if self.channel and self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_sync_message)

    def close(self) -> None:
        """Stop listening and release the sync channel."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._pending_syncs:
            task.cancel()
        if self.channel:
            self.channel.close()

    async def load_from_storage(self) -> None:
        """
        Load the persisted cart. Only the first successful call does any work.

        Raises:
            PersistenceError: If the record cannot be read; the store stays
                uninitialized so a later call can retry
        """
        if self._state == CartState.READY:
            return

        async with self._init_lock:
            if self._state == CartState.READY:
                return

            self._state = CartState.LOADING
            generation = self._clear_generation
            try:
                cart = await self._read_cart()
            except PersistenceError:
                if self._state == CartState.LOADING:
                    self._state = CartState.UNINITIALIZED
                logger.error("Error loading cart from storage")
                raise

            if generation != self._clear_generation:
                logger.info("Cart cleared by another context during load")
                return

            self._cart = cart
            self._state = CartState.READY
            logger.info(f"Cart loaded: {len(cart.items)} items, {len(cart.saved_items)} saved")

    async def sync_from_other_tab(self) -> None:
        """Replace in-memory state with the persisted record. Best-effort."""
        try:
            async with self._mutation_lock:
                generation = self._clear_generation
                cart = await self._read_cart()
                if generation == self._clear_generation:
                    self._cart = cart
                    self._state = CartState.READY
        except PersistenceError as e:
            logger.warning(f"Error syncing cart from other context: {e}")

    async def wait_for_sync(self) -> None:
        """Wait until re-reads triggered by incoming notifications have finished."""
        while self._pending_syncs:
            await asyncio.gather(*list(self._pending_syncs), return_exceptions=True)

    # Cart lines

    async def add_item(
        self,
        product_id: str,
        selected_variants: Union[SelectedVariants, dict],
        quantity: int = 1
    ) -> CartItem:
        """
        Add a configured product to the cart.

        An existing line with the same product and selection has its
        quantity increased instead of a new line being created; the combined
        quantity must fit in stock or nothing changes.

        Raises:
            NotFoundError: Unknown product
            ValidationError: Unknown or incompatible variants, or quantity < 1
            InsufficientStockError: Not enough stock for the resulting quantity
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        selection = SelectedVariants.model_validate(selected_variants)
        product = self._get_product(product_id)
        errors = validate_combination(product, selection)
        if errors:
            raise ValidationError(
                "Invalid variant selection",
                errors=[e.model_dump() for e in errors]
            )

        await self.load_from_storage()
        async with self._mutation_lock:
            cart = self._cart.model_copy(deep=True)

            existing = None
            for item in cart.items:
                if item.merge_key() == (product_id,) + selection.key():
                    existing = item
                    break

            others = [item for item in cart.items if item is not existing]
            if existing:
                new_quantity = existing.quantity + quantity
                self._check_stock(
                    product, selection, new_quantity, others,
                    message="Insufficient stock for requested quantity"
                )
                existing.quantity = new_quantity
                line = existing
            else:
                self._check_stock(
                    product, selection, quantity, others,
                    message="Insufficient stock for selected variants"
                )
                line = CartItem(
                    id=generate_line_id(),
                    product_id=product_id,
                    selected_variants=selection,
                    quantity=quantity,
                    added_at=get_current_timestamp(),
                )
                cart.items.append(line)

            await self._commit(cart)

        logger.info(f"Added {quantity} x {product_id} {selection.key()} (line {line.id}, now {line.quantity})")
        return line.model_copy(deep=True)

    async def update_quantity(self, item_id: str, quantity: int) -> Optional[CartItem]:
        """
        Set a line's quantity. A quantity below 1 removes the line.

        Raises:
            NotFoundError: Unknown line or its product is gone from the catalog
            InsufficientStockError: Not enough stock for the new quantity
        """
        if quantity < 1:
            await self.remove_item(item_id)
            return None

        await self.load_from_storage()
        async with self._mutation_lock:
            cart = self._cart.model_copy(deep=True)
            item = self._find(cart.items, item_id)
            if not item:
                raise NotFoundError("Item not found in cart")

            product = self._get_product(item.product_id)
            others = [line for line in cart.items if line.id != item_id]
            self._check_stock(
                product, item.selected_variants, quantity, others,
                message="Insufficient stock for requested quantity"
            )

            item.quantity = quantity
            await self._commit(cart)

        logger.info(f"Updated line {item_id} quantity to {quantity}")
        return item.model_copy(deep=True)

    async def remove_item(self, item_id: str) -> None:
        """Remove a line. Unknown IDs are ignored."""
        await self.load_from_storage()
        async with self._mutation_lock:
            if not self._find(self._cart.items, item_id):
                return

            cart = self._cart.model_copy(deep=True)
            cart.items = [item for item in cart.items if item.id != item_id]
            await self._commit(cart)

        logger.info(f"Removed line {item_id}")

    async def clear_cart(self) -> None:
        """Empty cart lines, saved items and promo codes, and tell other contexts."""
        await self.load_from_storage()
        async with self._mutation_lock:
            await self._storage_call(self.storage.delete())
            self._cart = Cart()

        logger.info("Cart cleared")
        self._publish(SyncMessage.cart_cleared())

    # Save for later

    async def save_for_later(self, item_id: str) -> SavedItem:
        """
        Move a cart line into the saved list, keeping its id, selection,
        quantity and original added_at.

        Raises:
            NotFoundError: Unknown line
        """
        await self.load_from_storage()
        async with self._mutation_lock:
            cart = self._cart.model_copy(deep=True)
            item = self._find(cart.items, item_id)
            if not item:
                raise NotFoundError("Item not found in cart")

            saved = SavedItem(
                id=item.id,
                product_id=item.product_id,
                selected_variants=item.selected_variants,
                quantity=item.quantity,
                added_at=item.added_at,
                saved_at=get_current_timestamp(),
            )
            cart.items = [line for line in cart.items if line.id != item_id]
            cart.saved_items.append(saved)
            await self._commit(cart)

        logger.info(f"Saved line {item_id} for later")
        return saved.model_copy(deep=True)

    async def move_to_cart(self, saved_item_id: str) -> CartItem:
        """
        Move a saved item back into the cart as a new line.

        The new line is not merged with an identical existing line.

        Raises:
            NotFoundError: Unknown saved item or its product is gone
            OutOfStockError: Stock can no longer cover the saved quantity
        """
        await self.load_from_storage()
        async with self._mutation_lock:
            cart = self._cart.model_copy(deep=True)
            saved = self._find(cart.saved_items, saved_item_id)
            if not saved:
                raise NotFoundError("Saved item not found")

            product = self._get_product(saved.product_id)
            self._check_stock(
                product, saved.selected_variants, saved.quantity, cart.items,
                message="Item is out of stock",
                error_cls=OutOfStockError
            )

            line = CartItem(
                id=generate_line_id(),
                product_id=saved.product_id,
                selected_variants=saved.selected_variants,
                quantity=saved.quantity,
                added_at=get_current_timestamp(),
            )
            cart.items.append(line)
            cart.saved_items = [s for s in cart.saved_items if s.id != saved_item_id]
            await self._commit(cart)

        logger.info(f"Moved saved item {saved_item_id} to cart as line {line.id}")
        return line.model_copy(deep=True)

    async def remove_saved_item(self, saved_item_id: str) -> None:
        """Drop a saved item. Unknown IDs are ignored."""
        await self.load_from_storage()
        async with self._mutation_lock:
            if not self._find(self._cart.saved_items, saved_item_id):
                return

            cart = self._cart.model_copy(deep=True)
            cart.saved_items = [s for s in cart.saved_items if s.id != saved_item_id]
            await self._commit(cart)

        logger.info(f"Removed saved item {saved_item_id}")

    # Promo codes

    async def apply_promo_code(self, code: str) -> List[str]:
        """
        Activate a promo code. Codes are stored uppercase; re-applying an
        active code does nothing.

        Eligibility is not checked here - see redeem_promo_code.

        Raises:
            ValidationError: Blank code
        """
        normalized = self._normalize_code(code)

        await self.load_from_storage()
        async with self._mutation_lock:
            if normalized in self._cart.promo_codes:
                return list(self._cart.promo_codes)

            cart = self._cart.model_copy(deep=True)
            cart.promo_codes.append(normalized)
            await self._commit(cart)

        logger.info(f"Applied promo code {normalized}")
        return list(self._cart.promo_codes)

    async def redeem_promo_code(self, code: str, promo_registry: PromoCodeRegistry) -> List[str]:
        """
        Validate a code against the registry and the current subtotal, then apply it.

        Raises:
            ValidationError: Blank, unknown, expired or below minimum purchase
        """
        normalized = self._normalize_code(code)
        await self.load_from_storage()

        subtotal = self.price_breakdown(promo_registry).subtotal
        if not promo_registry.validate(normalized, subtotal):
            raise ValidationError(
                "Invalid promo code",
                errors=[{"field": "promo_code", "message": f"{normalized} is not valid for this order"}]
            )
        return await self.apply_promo_code(normalized)

    async def remove_promo_code(self, code: str) -> List[str]:
        """Deactivate a promo code. Unknown codes are ignored."""
        normalized = self._normalize_code(code)

        await self.load_from_storage()
        async with self._mutation_lock:
            if normalized not in self._cart.promo_codes:
                return list(self._cart.promo_codes)

            cart = self._cart.model_copy(deep=True)
            cart.promo_codes = [c for c in cart.promo_codes if c != normalized]
            await self._commit(cart)

        logger.info(f"Removed promo code {normalized}")
        return list(self._cart.promo_codes)

    # Internals

    def _get_product(self, product_id: str) -> Product:
        if product_id not in self.catalog:
            raise NotFoundError("Product not found")
        return self.catalog.product_by_id(product_id)

    @staticmethod
    def _find(lines, line_id: str):
        for line in lines:
            if line.id == line_id:
                return line
        return None

    @staticmethod
    def _normalize_code(code: str) -> str:
        if not isinstance(code, str) or not code.strip():
            raise ValidationError(
                "Please enter a promo code",
                errors=[{"field": "promo_code", "message": "Promo code is required"}]
            )
        return code.strip().upper()

    def _check_stock(
        self,
        product: Product,
        selection: SelectedVariants,
        quantity: int,
        other_lines: List[CartItem],
        message: str,
        error_cls=InsufficientStockError
    ) -> None:
        if self.stock_policy == StockPolicy.PER_VARIANT:
            available = available_stock(product, selection)
            sufficient = has_sufficient_stock(product, selection, quantity)
        else:
            available = available_stock_given_reservations(product, selection, other_lines)
            sufficient = quantity <= available

        if not sufficient:
            raise error_cls(f"{message}. Available: {available}", available=available)

    async def _read_cart(self) -> Cart:
        record = await self._storage_call(self.storage.get())
        if not record:
            return Cart()
        try:
            return load_cart(record)
        except Exception as e:
            raise PersistenceError(f"Stored cart record is unreadable: {e}") from e

    async def _storage_call(self, awaitable):
        try:
            return await awaitable
        except CartError:
            raise
        except Exception as e:
            logger.error(f"Cart storage failure: {e}")
            raise PersistenceError("Cart storage failure") from e

    async def _commit(self, cart: Cart) -> None:
        """Persist, then swap in the new aggregate, then notify."""
        cart.last_updated = get_current_timestamp()
        await self._storage_call(self.storage.put(dump_cart(cart)))
        self._cart = cart
        self._publish(SyncMessage.cart_updated())

    def _publish(self, message: SyncMessage) -> None:
        if not self.channel:
            return
        try:
            self.channel.publish(message)
        except Exception as e:
            logger.warning(f"Cart sync broadcast failed: {e}")

    def _on_sync_message(self, message: SyncMessage) -> None:
        if message.type == SyncMessageType.CART_CLEARED:
            self._clear_generation += 1
            self._cart = Cart()
            self._state = CartState.READY
            return

        if message.type == SyncMessageType.CART_UPDATED:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("Cart update received outside an event loop; ignoring")
                return
            task = loop.create_task(self.sync_from_other_tab())
            self._pending_syncs.add(task)
            task.add_done_callback(self._pending_syncs.discard)
