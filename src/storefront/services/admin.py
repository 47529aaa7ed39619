from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from storefront.db import models
from storefront.db.errors import NotFoundError
from storefront.db.storage import Storage
from storefront.services.orders import check_status
from storefront.utils.state import UserContext, require_admin


@dataclass(frozen=True)
class DashboardStats:
    total_sales: int  # minor units
    total_orders: int
    pending_orders: int
    total_products: int
    low_stock_products: int
    total_messages: int
    unread_messages: int


class AdminService:
    """Read-mostly views over users, orders and messages for administrators."""

    def __init__(self, store: Storage, low_stock_threshold: int = 5) -> None:
        self.store = store
        self.low_stock_threshold = low_stock_threshold

    async def dashboard(self, ctx: Optional[UserContext]) -> DashboardStats:
        require_admin(ctx)
        orders = await self.store.get_all_orders()
        products = await self.store.get_all_products()
        messages = await self.store.get_all_contact_messages()
        return DashboardStats(
            total_sales=sum(o.total_amount for o in orders),
            total_orders=len(orders),
            pending_orders=sum(1 for o in orders if o.status == "pending"),
            total_products=len(products),
            low_stock_products=sum(
                1 for p in products if p.stock <= self.low_stock_threshold
            ),
            total_messages=len(messages),
            unread_messages=sum(1 for m in messages if m.read_at is None),
        )

    async def list_users(self, ctx: Optional[UserContext]) -> List[models.User]:
        require_admin(ctx)
        return await self.store.get_all_users()

    async def list_orders(
        self, ctx: Optional[UserContext], status: Optional[str] = None
    ) -> List[models.Order]:
        require_admin(ctx)
        orders = await self.store.get_all_orders()
        if status is None or status == "all":
            return orders
        status = check_status(status)
        return [o for o in orders if o.status == status]

    async def list_messages(
        self, ctx: Optional[UserContext]
    ) -> List[models.ContactMessage]:
        require_admin(ctx)
        return await self.store.get_all_contact_messages()

    async def mark_message_read(
        self, ctx: Optional[UserContext], message_id: int
    ) -> models.ContactMessage:
        require_admin(ctx)
        message = await self.store.mark_contact_message_read(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found.")
        return message
