from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from storefront.db import models
from storefront.db.errors import NotFoundError, ValidationError
from storefront.db.storage import Storage
from storefront.utils.logger import get_logger
from storefront.utils.state import UserContext, require_admin

_logger = get_logger(__name__)

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"

SORTS = ("featured", "price-low-high", "price-high-low")

_TEXT_FIELDS = ("name", "description", "category", "image_url", "unit")
_AMOUNT_FIELDS = ("price", "stock")


def stock_status(product: models.Product, low_stock: int = 5) -> str:
    if product.stock <= 0:
        return OUT_OF_STOCK
    if product.stock <= low_stock:
        return LOW_STOCK
    return IN_STOCK


def validate_product_fields(data: Mapping[str, object]) -> None:
    for key in _TEXT_FIELDS:
        if key in data and (not isinstance(data[key], str) or not data[key].strip()):
            raise ValidationError(f"{key} is required.")
    for key in _AMOUNT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{key} must be a non-negative whole number.")


@dataclass(frozen=True)
class ProductListing:
    product: models.Product
    stock_status: str

    @property
    def purchasable(self) -> bool:
        return self.stock_status != OUT_OF_STOCK


class CatalogService:
    def __init__(self, store: Storage, low_stock_threshold: int = 5) -> None:
        self.store = store
        self.low_stock_threshold = low_stock_threshold

    def _listing(self, product: models.Product) -> ProductListing:
        return ProductListing(product, stock_status(product, self.low_stock_threshold))

    async def list_products(
        self,
        category: Optional[str] = None,
        max_price: Optional[int] = None,
        sort: str = "featured",
    ) -> List[ProductListing]:
        """Stock-annotated catalog, optionally filtered by category and price ceiling."""
        if sort not in SORTS:
            raise ValidationError(f"Unknown sort {sort!r}.")
        if category:
            products = await self.store.get_products_by_category(category)
        else:
            products = await self.store.get_all_products()
        if max_price is not None:
            products = [p for p in products if p.price <= max_price]
        if sort == "price-low-high":
            products = sorted(products, key=lambda p: p.price)
        elif sort == "price-high-low":
            products = sorted(products, key=lambda p: p.price, reverse=True)
        return [self._listing(p) for p in products]

    async def get_product(self, product_id: int) -> Optional[ProductListing]:
        product = await self.store.get_product(product_id)
        return self._listing(product) if product else None

    async def categories(self) -> List[str]:
        seen: List[str] = []
        for product in await self.store.get_all_products():
            if product.category not in seen:
                seen.append(product.category)
        return seen

    async def max_price(self) -> int:
        return max((p.price for p in await self.store.get_all_products()), default=0)

    # ---------------------------
    # Admin product management
    # ---------------------------

    async def create_product(
        self, ctx: Optional[UserContext], product: models.NewProduct
    ) -> models.Product:
        require_admin(ctx)
        validate_product_fields(vars(product))
        created = await self.store.create_product(product)
        _logger.info(f"Product #{created.id} '{created.name}' created")
        return created

    async def update_product(
        self, ctx: Optional[UserContext], product_id: int, data: Mapping[str, object]
    ) -> models.Product:
        require_admin(ctx)
        validate_product_fields(data)
        updated = await self.store.update_product(product_id, data)
        if updated is None:
            raise NotFoundError(f"Product {product_id} not found.")
        return updated

    async def delete_product(self, ctx: Optional[UserContext], product_id: int) -> bool:
        require_admin(ctx)
        removed = await self.store.delete_product(product_id)
        if removed:
            _logger.info(f"Product #{product_id} deleted")
        return removed
