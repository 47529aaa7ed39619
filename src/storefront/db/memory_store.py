from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from storefront.db import models
from storefront.db.errors import ConflictError
from storefront.db.storage import Storage, advance, normalize_user, pick_fields, utcnow


def _newest_first(rows):
    return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)


class MemoryStorage(Storage):
    """
    Process-local storage for development and tests.

    Every method body runs without awaiting, so each call is one uninterrupted
    step of the event loop. Id counters only ever move forward.
    """

    def __init__(self) -> None:
        super().__init__()
        self.users: Dict[int, models.User] = {}
        self.products: Dict[int, models.Product] = {}
        self.cart_items: Dict[int, models.CartItem] = {}
        self.orders: Dict[int, models.Order] = {}
        self.order_items: Dict[int, models.OrderItem] = {}
        self.contact_messages: Dict[int, models.ContactMessage] = {}
        self._ids = {
            name: itertools.count(1)
            for name in (
                "users",
                "products",
                "cart_items",
                "orders",
                "order_items",
                "contact_messages",
            )
        }

    def _next_id(self, table: str) -> int:
        return next(self._ids[table])

    # ---------------------------
    # Users
    # ---------------------------

    def _check_unique(self, username: Optional[str], email: Optional[str], skip_id=None):
        for user in self.users.values():
            if user.id == skip_id:
                continue
            if username is not None and user.username == username:
                raise ConflictError("Username or email already exists.")
            if email is not None and user.email == email:
                raise ConflictError("Username or email already exists.")

    async def get_user(self, id: int) -> Optional[models.User]:
        return self.users.get(id)

    async def get_user_by_username(self, username: str) -> Optional[models.User]:
        username = username.lower()
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[models.User]:
        email = email.lower()
        return next((u for u in self.users.values() if u.email == email), None)

    async def get_all_users(self) -> List[models.User]:
        return list(self.users.values())

    async def create_user(self, user: models.NewUser) -> models.User:
        user = normalize_user(user)
        self._check_unique(user.username, user.email)
        created = models.User(id=self._next_id("users"), **vars(user))
        self.users[created.id] = created
        return created

    async def update_user(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.User]:
        fields = pick_fields(data, models.USER_FIELDS, models.USER_NULLABLE)
        current = self.users.get(id)
        if current is None:
            return None
        self._check_unique(fields.get("username"), fields.get("email"), skip_id=id)
        updated = replace(current, **fields)
        self.users[id] = updated
        return updated

    # ---------------------------
    # Products
    # ---------------------------

    async def get_product(self, id: int) -> Optional[models.Product]:
        return self.products.get(id)

    async def get_all_products(self) -> List[models.Product]:
        return list(self.products.values())

    async def get_products_by_category(self, category: str) -> List[models.Product]:
        return [p for p in self.products.values() if p.category == category]

    async def create_product(self, product: models.NewProduct) -> models.Product:
        created = models.Product(
            id=self._next_id("products"), created_at=utcnow(), **vars(product)
        )
        self.products[created.id] = created
        return created

    async def update_product(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.Product]:
        fields = pick_fields(data, models.PRODUCT_FIELDS)
        current = self.products.get(id)
        if current is None:
            return None
        updated = replace(current, **fields)
        self.products[id] = updated
        return updated

    async def delete_product(self, id: int) -> bool:
        return self.products.pop(id, None) is not None

    # ---------------------------
    # Cart
    # ---------------------------

    async def get_cart_items(self, user_id: int) -> List[models.CartItem]:
        return [c for c in self.cart_items.values() if c.user_id == user_id]

    async def add_to_cart(self, item: models.NewCartItem) -> models.CartItem:
        for existing in self.cart_items.values():
            if (existing.user_id, existing.product_id) == (item.user_id, item.product_id):
                merged = replace(existing, quantity=existing.quantity + item.quantity)
                self.cart_items[merged.id] = merged
                return merged
        created = models.CartItem(
            id=self._next_id("cart_items"),
            user_id=item.user_id,
            product_id=item.product_id,
            quantity=item.quantity,
            added_at=utcnow(),
        )
        self.cart_items[created.id] = created
        return created

    async def update_cart_item_quantity(
        self, id: int, quantity: int
    ) -> Optional[models.CartItem]:
        current = self.cart_items.get(id)
        if current is None:
            return None
        updated = replace(current, quantity=quantity)
        self.cart_items[id] = updated
        return updated

    async def remove_from_cart(self, id: int) -> bool:
        return self.cart_items.pop(id, None) is not None

    async def clear_cart(self, user_id: int) -> bool:
        for item_id in [c.id for c in self.cart_items.values() if c.user_id == user_id]:
            del self.cart_items[item_id]
        return True

    # ---------------------------
    # Orders
    # ---------------------------

    async def create_order(
        self,
        order: models.NewOrder,
        items: Sequence[models.NewOrderItem],
        *,
        consume: Sequence[models.CartItem] = (),
    ) -> models.Order:
        # build every row before touching the maps
        created_at = utcnow()
        created = models.Order(
            id=self._next_id("orders"),
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            created_at=created_at,
            updated_at=created_at,
        )
        lines = [
            models.OrderItem(
                id=self._next_id("order_items"),
                order_id=created.id,
                product_id=it.product_id,
                quantity=it.quantity,
                price=it.price,
            )
            for it in items
        ]
        self.orders[created.id] = created
        self.order_items.update((line.id, line) for line in lines)
        for item in consume:
            current = self.cart_items.get(item.id)
            if current is not None and (current.user_id, current.quantity) == (
                order.user_id,
                item.quantity,
            ):
                del self.cart_items[item.id]
        return created

    async def get_order(self, id: int) -> Optional[models.Order]:
        return self.orders.get(id)

    async def get_order_items(self, order_id: int) -> List[models.OrderItem]:
        return [i for i in self.order_items.values() if i.order_id == order_id]

    async def get_user_orders(self, user_id: int) -> List[models.Order]:
        return _newest_first(o for o in self.orders.values() if o.user_id == user_id)

    async def get_all_orders(self) -> List[models.Order]:
        return _newest_first(self.orders.values())

    async def update_order_status(
        self, id: int, status: str
    ) -> Optional[models.Order]:
        current = self.orders.get(id)
        if current is None:
            return None
        updated = replace(current, status=status, updated_at=advance(current.updated_at))
        self.orders[id] = updated
        return updated

    # ---------------------------
    # Contact messages
    # ---------------------------

    async def create_contact_message(
        self, message: models.NewContactMessage
    ) -> models.ContactMessage:
        created = models.ContactMessage(
            id=self._next_id("contact_messages"), created_at=utcnow(), **vars(message)
        )
        self.contact_messages[created.id] = created
        return created

    async def get_all_contact_messages(self) -> List[models.ContactMessage]:
        return _newest_first(self.contact_messages.values())

    async def mark_contact_message_read(
        self, id: int
    ) -> Optional[models.ContactMessage]:
        current = self.contact_messages.get(id)
        if current is None:
            return None
        if current.read_at is None:
            current = replace(current, read_at=utcnow())
            self.contact_messages[id] = current
        return current
