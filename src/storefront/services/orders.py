from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from storefront.db import models
from storefront.db.errors import (
    EmptyCartError,
    InvalidCartStateError,
    NotFoundError,
    ValidationError,
)
from storefront.db.storage import Storage
from storefront.utils.logger import get_logger
from storefront.utils.notify import NotificationSink, deliver
from storefront.utils.state import UserContext, require_admin, require_user

_logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderDetail:
    order: models.Order
    items: List[models.OrderItem]


def check_status(status: str) -> str:
    status = (status or "").strip().lower()
    if status not in models.ORDER_STATUSES:
        raise ValidationError(
            f"Unknown order status {status!r}; expected one of {', '.join(models.ORDER_STATUSES)}."
        )
    return status


class OrderService:
    """Turns carts into orders and answers order queries."""

    def __init__(self, store: Storage, notifier: Optional[NotificationSink] = None) -> None:
        self.store = store
        self.notifier = notifier or NotificationSink()

    async def place_order(
        self, ctx: Optional[UserContext], shipping_address: str
    ) -> models.Order:
        """
        Create an order from the user's cart and empty the cart.

        Prices are taken from the products as they are right now and frozen
        into the order items. Order, items and the cart clear are persisted as
        one unit; checkouts of the same user are serialized so a second,
        concurrent checkout finds the cart already empty.

        Raises:
            UnauthenticatedError: no user context.
            ValidationError: blank shipping address.
            EmptyCartError: nothing in the cart.
            InvalidCartStateError: a cart row points at a deleted product.
        """
        ctx = require_user(ctx)
        shipping_address = (shipping_address or "").strip()
        if not shipping_address:
            raise ValidationError("Shipping address is required.")

        async with self.store.checkout_lock(ctx.user_id):
            cart = await self.store.get_cart_items(ctx.user_id)
            if not cart:
                raise EmptyCartError()

            lines: List[models.NewOrderItem] = []
            for item in cart:
                product = await self.store.get_product(item.product_id)
                if product is None:
                    raise InvalidCartStateError(item.product_id)
                lines.append(
                    models.NewOrderItem(
                        product_id=product.id,
                        quantity=item.quantity,
                        price=product.price,
                    )
                )
            total = sum(line.price * line.quantity for line in lines)

            order = await self.store.create_order(
                models.NewOrder(
                    user_id=ctx.user_id,
                    total_amount=total,
                    shipping_address=shipping_address,
                ),
                lines,
                consume=cart,
            )

        _logger.info(
            f"Order #{order.id} placed by user {ctx.user_id}: {len(lines)} line(s), total {total}"
        )
        await self._confirm(order)
        return order

    async def _confirm(self, order: models.Order) -> None:
        # the order is durable by now; nothing here may undo it
        user = await self.store.get_user(order.user_id)
        if user is None:
            _logger.warning(f"No user {order.user_id} to confirm order #{order.id} to.")
            return
        items = await self.store.get_order_items(order.id)
        await deliver(
            "Order confirmation",
            self.notifier.notify_order_confirmation(user, order, items),
        )

    async def list_orders(self, ctx: Optional[UserContext]) -> List[models.Order]:
        ctx = require_user(ctx)
        return await self.store.get_user_orders(ctx.user_id)

    async def get_order_detail(
        self, ctx: Optional[UserContext], order_id: int
    ) -> Optional[OrderDetail]:
        """Order plus items, visible to its owner and to admins only."""
        ctx = require_user(ctx)
        order = await self.store.get_order(order_id)
        if order is None or (order.user_id != ctx.user_id and not ctx.is_admin):
            return None
        return OrderDetail(order=order, items=await self.store.get_order_items(order_id))

    async def set_status(
        self, ctx: Optional[UserContext], order_id: int, status: str
    ) -> models.Order:
        require_admin(ctx)
        status = check_status(status)
        order = await self.store.update_order_status(order_id, status)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        _logger.info(f"Order #{order_id} status -> {status}")
        return order
