"""
Shared fixtures for cart engine tests.
"""
import pytest

from storefront.data.products import Catalog
from storefront.data.promo_codes import PromoCodeRegistry
from storefront.models.product import Product, SelectedVariants
from storefront.services.cart_service import CartStore
from storefront.services.persistence import InMemoryCartStorage
from storefront.services.sync import BroadcastHub


@pytest.fixture
def mock_product() -> Product:
    """Product with simple round-number prices and modifiers."""
    return Product.model_validate({
        "id": "test-001",
        "name": "Test Product",
        "base_price": 100,
        "rating": 4.5,
        "review_count": 10,
        "variants": {
            "colors": [
                {"id": "red", "name": "Red", "price_modifier": 0, "stock": 10},
                {"id": "blue", "name": "Blue", "price_modifier": 10, "stock": 10},
            ],
            "materials": [
                {"id": "matte", "name": "Matte", "price_modifier": 0, "stock": 10},
                {"id": "glossy", "name": "Glossy", "price_modifier": 20, "stock": 10},
            ],
            "sizes": [
                {"id": "s", "name": "Small", "price_modifier": -10, "stock": 10},
                {"id": "m", "name": "Medium", "price_modifier": 0, "stock": 10},
                {"id": "l", "name": "Large", "price_modifier": 15, "stock": 10},
            ],
        },
    })


@pytest.fixture
def red_matte_m() -> SelectedVariants:
    return SelectedVariants(color="red", material="matte", size="m")


@pytest.fixture
def catalog() -> Catalog:
    return Catalog()


@pytest.fixture
def promo_registry() -> PromoCodeRegistry:
    return PromoCodeRegistry()


@pytest.fixture
def storage() -> InMemoryCartStorage:
    return InMemoryCartStorage()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def store(catalog, storage, hub) -> CartStore:
    """Cart store over the real catalog and in-memory storage."""
    cart_store = CartStore(catalog, storage, hub.open_channel("cart-sync"))
    cart_store.start()
    yield cart_store
    cart_store.close()
