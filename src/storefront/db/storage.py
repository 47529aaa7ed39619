# storage contract shared by the durable and in-memory backends
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, Iterable, List, Mapping, Optional, Sequence

from storefront.db import models
from storefront.db.errors import ValidationError
from storefront.db.seed import bootstrap


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def advance(previous: Optional[datetime]) -> datetime:
    """Current time, but strictly later than `previous`."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def normalize_user(user: models.NewUser) -> models.NewUser:
    """Lowercase username and email; password is passed through untouched."""
    return replace(user, username=user.username.lower(), email=user.email.lower())


def pick_fields(
    data: Mapping[str, object],
    allowed: Iterable[str],
    nullable: Iterable[str] = (),
) -> Dict[str, object]:
    """Keep only whitelisted keys of a partial update.

    Unknown keys, and None for a column that is not nullable, are errors.
    """
    allowed = tuple(allowed)
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")
    nulled = sorted(k for k, v in data.items() if v is None and k not in nullable)
    if nulled:
        raise ValidationError(f"Field(s) may not be empty: {', '.join(nulled)}")
    fields = dict(data)
    for key in ("username", "email"):
        if isinstance(fields.get(key), str):
            fields[key] = fields[key].lower()
    return fields


class Storage(ABC):
    """
    Persistence contract for every storefront entity.

    Lookups of a missing id return None. Duplicate usernames or emails raise
    ConflictError. Anything the backing medium raises propagates untouched.
    """

    def __init__(self) -> None:
        self._bootstrapped = False
        self._checkout_locks: Dict[int, asyncio.Lock] = {}
        self._lock_holders: Dict[int, int] = {}

    async def initialize(self) -> None:
        """Run bootstrap seeding once per storage instance."""
        if self._bootstrapped:
            return
        await bootstrap(self)
        self._bootstrapped = True

    @asynccontextmanager
    async def checkout_lock(self, user_id: int) -> AsyncIterator[None]:
        """Serialize cart mutations and checkout for one user within the process.

        The per-user lock is dropped once nobody holds or waits for it.
        """
        lock = self._checkout_locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._checkout_locks[user_id]

    # ---------------------------
    # Users
    # ---------------------------

    @abstractmethod
    async def get_user(self, id: int) -> Optional[models.User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[models.User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[models.User]: ...

    @abstractmethod
    async def get_all_users(self) -> List[models.User]: ...

    @abstractmethod
    async def create_user(self, user: models.NewUser) -> models.User: ...

    @abstractmethod
    async def update_user(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.User]: ...

    # ---------------------------
    # Products
    # ---------------------------

    @abstractmethod
    async def get_product(self, id: int) -> Optional[models.Product]: ...

    @abstractmethod
    async def get_all_products(self) -> List[models.Product]: ...

    @abstractmethod
    async def get_products_by_category(self, category: str) -> List[models.Product]: ...

    @abstractmethod
    async def create_product(self, product: models.NewProduct) -> models.Product: ...

    @abstractmethod
    async def update_product(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.Product]: ...

    @abstractmethod
    async def delete_product(self, id: int) -> bool: ...

    # ---------------------------
    # Cart
    # ---------------------------

    @abstractmethod
    async def get_cart_items(self, user_id: int) -> List[models.CartItem]: ...

    @abstractmethod
    async def add_to_cart(self, item: models.NewCartItem) -> models.CartItem:
        """Insert, or merge into the existing (user, product) row by summing quantity."""

    @abstractmethod
    async def update_cart_item_quantity(
        self, id: int, quantity: int
    ) -> Optional[models.CartItem]: ...

    @abstractmethod
    async def remove_from_cart(self, id: int) -> bool: ...

    @abstractmethod
    async def clear_cart(self, user_id: int) -> bool:
        """Remove every cart row of the user. Always True."""

    # ---------------------------
    # Orders
    # ---------------------------

    @abstractmethod
    async def create_order(
        self,
        order: models.NewOrder,
        items: Sequence[models.NewOrderItem],
        *,
        consume: Sequence[models.CartItem] = (),
    ) -> models.Order:
        """Insert the order and its items all-or-nothing.

        Cart rows in `consume` are deleted in the same unit, but only while
        their quantity still matches; rows added or merged into since the
        cart was read stay in the cart.
        """

    @abstractmethod
    async def get_order(self, id: int) -> Optional[models.Order]: ...

    @abstractmethod
    async def get_order_items(self, order_id: int) -> List[models.OrderItem]: ...

    @abstractmethod
    async def get_user_orders(self, user_id: int) -> List[models.Order]:
        """Newest first."""

    @abstractmethod
    async def get_all_orders(self) -> List[models.Order]:
        """Newest first."""

    @abstractmethod
    async def update_order_status(
        self, id: int, status: str
    ) -> Optional[models.Order]: ...

    # ---------------------------
    # Contact messages
    # ---------------------------

    @abstractmethod
    async def create_contact_message(
        self, message: models.NewContactMessage
    ) -> models.ContactMessage: ...

    @abstractmethod
    async def get_all_contact_messages(self) -> List[models.ContactMessage]:
        """Newest first."""

    @abstractmethod
    async def mark_contact_message_read(
        self, id: int
    ) -> Optional[models.ContactMessage]: ...
