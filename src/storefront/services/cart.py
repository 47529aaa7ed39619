from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from storefront.config import Settings
from storefront.db import models
from storefront.db.errors import NotFoundError, ValidationError
from storefront.db.storage import Storage
from storefront.utils.state import UserContext, require_user


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number.")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    return quantity


@dataclass(frozen=True)
class CartLine:
    item: models.CartItem
    product: models.Product

    @property
    def line_total(self) -> int:
        # live price, not a snapshot
        return self.product.price * self.item.quantity


@dataclass(frozen=True)
class CartSummary:
    lines: List[CartLine] = field(default_factory=list)
    missing: List[models.CartItem] = field(default_factory=list)
    shipping_fee: int = 0

    @property
    def total_items(self) -> int:
        return sum(line.item.quantity for line in self.lines)

    @property
    def total_price(self) -> int:
        return sum(line.line_total for line in self.lines)

    @property
    def grand_total(self) -> int:
        return self.total_price + self.shipping_fee

    @property
    def is_empty(self) -> bool:
        return not self.lines and not self.missing


class CartService:
    """Cart mutations for the logged-in user; one row per product.

    Mutations hold the user's checkout lock, so none lands between checkout
    reading the cart and the order being written.
    """

    def __init__(self, store: Storage, settings: Optional[Settings] = None) -> None:
        self.store = store
        self.settings = settings or Settings()

    async def _own_item(self, ctx: UserContext, cart_item_id: int) -> Optional[models.CartItem]:
        items = await self.store.get_cart_items(ctx.user_id)
        return next((i for i in items if i.id == cart_item_id), None)

    async def add_to_cart(
        self, ctx: Optional[UserContext], product_id: int, quantity: int = 1
    ) -> models.CartItem:
        ctx = require_user(ctx)
        _check_quantity(quantity)
        product = await self.store.get_product(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found.")
        if product.stock <= 0:
            raise ValidationError(f"{product.name} is out of stock.")
        async with self.store.checkout_lock(ctx.user_id):
            return await self.store.add_to_cart(
                models.NewCartItem(user_id=ctx.user_id, product_id=product_id, quantity=quantity)
            )

    async def update_quantity(
        self, ctx: Optional[UserContext], cart_item_id: int, quantity: int
    ) -> Optional[models.CartItem]:
        """Set a row's quantity. Non-positive quantities are rejected, never treated as removal."""
        ctx = require_user(ctx)
        _check_quantity(quantity)
        async with self.store.checkout_lock(ctx.user_id):
            if await self._own_item(ctx, cart_item_id) is None:
                return None
            return await self.store.update_cart_item_quantity(cart_item_id, quantity)

    async def remove_item(self, ctx: Optional[UserContext], cart_item_id: int) -> bool:
        ctx = require_user(ctx)
        async with self.store.checkout_lock(ctx.user_id):
            if await self._own_item(ctx, cart_item_id) is None:
                return False
            return await self.store.remove_from_cart(cart_item_id)

    async def clear(self, ctx: Optional[UserContext]) -> bool:
        ctx = require_user(ctx)
        async with self.store.checkout_lock(ctx.user_id):
            return await self.store.clear_cart(ctx.user_id)

    async def summary(self, ctx: Optional[UserContext]) -> CartSummary:
        """Join each cart row with its product's current price.

        Rows whose product was deleted are reported in `missing` and left out of
        the totals.
        """
        ctx = require_user(ctx)
        lines: List[CartLine] = []
        missing: List[models.CartItem] = []
        for item in await self.store.get_cart_items(ctx.user_id):
            product = await self.store.get_product(item.product_id)
            if product is None:
                missing.append(item)
            else:
                lines.append(CartLine(item=item, product=product))
        subtotal = sum(line.line_total for line in lines)
        return CartSummary(
            lines=lines, missing=missing, shipping_fee=self.shipping_for(subtotal)
        )

    def shipping_for(self, subtotal: int) -> int:
        if subtotal <= 0 or subtotal >= self.settings.free_shipping_min:
            return 0
        return self.settings.shipping_fee
