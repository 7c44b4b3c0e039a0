"""
Static product catalog.

Read-only reference data; stock values are catalog ceilings and are never
decremented by cart activity.
"""

from typing import Dict, List, Optional

from storefront.models.product import Product, Variant
from storefront.services.validation import resolve_variant


def _v(id: str, name: str, modifier: int, stock: int, hex: Optional[str] = None, incompatible: Optional[List[str]] = None) -> dict:
    return {
        "id": id,
        "name": name,
        "price_modifier": modifier,
        "stock": stock,
        "hex": hex,
        "incompatible_with": incompatible or [],
    }


PRODUCT_DATA: List[dict] = [
    {
        "id": "chair-001",
        "name": "Custom Designer Chair",
        "description": "A modern, customizable chair with premium materials and sleek design.",
        "base_price": 299,
        "rating": 4.7,
        "review_count": 342,
        "category": "Furniture",
        "brand": "ModernHome",
        "origin": "Italy",
        "bundle_eligible": ["lamp-002", "vase-003"],
        "variants": {
            "colors": [
                _v("red", "Cherry Red", 0, 15, "#DC143C"),
                _v("blue", "Ocean Blue", 0, 23, "#1E90FF"),
                _v("black", "Matte Black", 10, 8, "#1A1A1A"),
                _v("white", "Pure White", 0, 42, "#FFFFFF"),
                _v("green", "Forest Green", 0, 18, "#228B22"),
                _v("neon", "Neon Pink", 15, 3, "#FF10F0", ["wood"]),
            ],
            "materials": [
                _v("matte", "Matte Finish", 0, 100),
                _v("glossy", "Glossy Finish", 20, 85),
                _v("metallic", "Metallic", 40, 45),
                _v("wood", "Wood Grain", 50, 28, incompatible=["neon"]),
                _v("fabric", "Fabric Texture", 30, 60),
            ],
            "sizes": [
                _v("s", "Small", -10, 25),
                _v("m", "Medium", 0, 50),
                _v("l", "Large", 15, 35),
                _v("xl", "Extra Large", 30, 12),
            ],
        },
    },
    {
        "id": "lamp-002",
        "name": "Designer Table Lamp",
        "description": "Elegant table lamp with adjustable brightness and customizable color options.",
        "base_price": 149,
        "rating": 4.5,
        "review_count": 218,
        "category": "Lighting",
        "brand": "LuxLight",
        "origin": "Denmark",
        "bundle_eligible": ["chair-001", "vase-003"],
        "variants": {
            "colors": [
                _v("gold", "Gold", 25, 18, "#FFD700"),
                _v("silver", "Silver", 20, 30, "#C0C0C0"),
                _v("bronze", "Bronze", 15, 22, "#CD7F32"),
                _v("black", "Matte Black", 0, 45, "#1A1A1A"),
                _v("white", "Pure White", 0, 38, "#FFFFFF"),
                _v("rose", "Rose Gold", 30, 4, "#B76E79"),
            ],
            "materials": [
                _v("matte", "Matte Finish", 0, 95),
                _v("glossy", "Glossy Finish", 15, 72),
                _v("metallic", "Metallic", 35, 58),
                _v("brushed", "Brushed Metal", 40, 41),
            ],
            "sizes": [
                _v("s", "Compact", -15, 30),
                _v("m", "Standard", 0, 55),
                _v("l", "Large", 20, 25),
            ],
        },
    },
    {
        "id": "vase-003",
        "name": "Modern Ceramic Vase",
        "description": "Handcrafted ceramic vase with smooth curves and contemporary design.",
        "base_price": 89,
        "rating": 4.8,
        "review_count": 156,
        "category": "Decor",
        "brand": "Artisan Co",
        "origin": "Japan",
        "bundle_eligible": ["chair-001", "lamp-002"],
        "variants": {
            "colors": [
                _v("terracotta", "Terracotta", 0, 28, "#E2725B"),
                _v("navy", "Navy Blue", 5, 35, "#000080"),
                _v("sage", "Sage Green", 5, 31, "#9CAF88"),
                _v("cream", "Cream", 0, 42, "#FFFDD0"),
                _v("charcoal", "Charcoal", 10, 19, "#36454F"),
            ],
            "materials": [
                _v("matte", "Matte Ceramic", 0, 88),
                _v("glossy", "Glossy Glaze", 15, 64),
                _v("textured", "Textured Finish", 20, 42),
                _v("crackle", "Crackle Glaze", 25, 28),
            ],
            "sizes": [
                _v("s", 'Small (6")', -10, 35),
                _v("m", 'Medium (10")', 0, 48),
                _v("l", 'Large (14")', 15, 22),
                _v("xl", 'Extra Large (18")', 25, 8),
            ],
        },
    },
    {
        "id": "ring-004",
        "name": "Decorative Ring Sculpture",
        "description": "Minimalist ring sculpture that adds a touch of elegance to any space.",
        "base_price": 199,
        "rating": 4.6,
        "review_count": 94,
        "category": "Sculpture",
        "brand": "ArtMetal",
        "origin": "USA",
        "bundle_eligible": ["sculpture-005"],
        "variants": {
            "colors": [
                _v("gold", "Polished Gold", 40, 12, "#FFD700"),
                _v("silver", "Polished Silver", 35, 18, "#C0C0C0"),
                _v("copper", "Copper", 30, 15, "#B87333"),
                _v("black", "Matte Black", 0, 24, "#1A1A1A"),
                _v("white", "Pearl White", 20, 20, "#F8F8FF"),
            ],
            "materials": [
                _v("metallic", "Polished Metal", 50, 45),
                _v("brushed", "Brushed Metal", 45, 38),
                _v("matte", "Matte Finish", 0, 52),
                _v("chrome", "Chrome", 60, 22),
            ],
            "sizes": [
                _v("s", 'Small (8")', -20, 28),
                _v("m", 'Medium (12")', 0, 35),
                _v("l", 'Large (16")', 25, 18),
            ],
        },
    },
    {
        "id": "sculpture-005",
        "name": "Abstract Art Sculpture",
        "description": "Unique abstract sculpture combining multiple geometric shapes.",
        "base_price": 449,
        "rating": 4.9,
        "review_count": 67,
        "category": "Sculpture",
        "brand": "ModernArt Studio",
        "origin": "France",
        "bundle_eligible": ["ring-004"],
        "variants": {
            "colors": [
                _v("multi", "Multicolor", 50, 8, "#FF6B6B"),
                _v("mono", "Monochrome", 0, 15, "#2C3E50"),
                _v("gradient", "Gradient Blue", 35, 10, "#667EEA"),
                _v("earth", "Earth Tones", 20, 12, "#8B7355"),
            ],
            "materials": [
                _v("matte", "Matte Finish", 0, 35),
                _v("glossy", "High Gloss", 40, 28),
                _v("metallic", "Metallic Blend", 75, 18),
                _v("textured", "Textured Surface", 50, 22),
            ],
            "sizes": [
                _v("m", 'Medium (18")', 0, 20),
                _v("l", 'Large (24")', 50, 12),
                _v("xl", 'Extra Large (36")', 100, 3),
            ],
        },
    },
]


class Catalog:
    """Read-only product lookup."""

    def __init__(self, products: Optional[List[Product]] = None):
        if products is None:
            products = [Product.model_validate(data) for data in PRODUCT_DATA]
        self._products: Dict[str, Product] = {p.id: p for p in products}

    def product_by_id(self, product_id: str) -> Optional[Product]:
        """Get a product by ID, or None if unknown."""
        return self._products.get(product_id)

    def variant_by_id(self, product: Product, group: str, variant_id: str) -> Optional[Variant]:
        """Get a variant by ID within one of the product's variant groups."""
        return resolve_variant(product, group, variant_id)

    def list_products(self) -> List[Product]:
        return list(self._products.values())

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._products
