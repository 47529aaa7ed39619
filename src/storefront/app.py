from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from storefront.config import Settings
from storefront.db.memory_store import MemoryStorage
from storefront.db.sqlite_store import SqliteStorage
from storefront.db.storage import Storage
from storefront.services.admin import AdminService
from storefront.services.cart import CartService
from storefront.services.catalog import CatalogService
from storefront.services.contact import ContactService
from storefront.services.orders import OrderService
from storefront.utils.logger import get_logger
from storefront.utils.notify import LogNotifier, NotificationSink

_logger = get_logger(__name__)

BACKENDS: Dict[str, Callable[[Settings], Storage]] = {
    "sqlite": lambda settings: SqliteStorage(settings.db_path),
    "memory": lambda settings: MemoryStorage(),
}


async def open_storage(settings: Settings) -> Storage:
    """Build the configured backend and run bootstrap seeding on it."""
    try:
        factory = BACKENDS[settings.backend]
    except KeyError:
        raise ValueError(
            f"Unknown storage backend {settings.backend!r}; expected one of {', '.join(BACKENDS)}."
        ) from None
    store = factory(settings)
    _logger.info(f"Using {settings.backend} storage")
    await store.initialize()
    return store


@dataclass
class Storefront:
    """All services sharing one storage handle."""

    settings: Settings
    store: Storage
    catalog: CatalogService
    cart: CartService
    orders: OrderService
    contact: ContactService
    admin: AdminService


async def create_app(
    settings: Optional[Settings] = None, notifier: Optional[NotificationSink] = None
) -> Storefront:
    settings = settings or Settings.from_env()
    store = await open_storage(settings)
    notifier = notifier or LogNotifier(store)
    return Storefront(
        settings=settings,
        store=store,
        catalog=CatalogService(store, settings.low_stock_threshold),
        cart=CartService(store, settings),
        orders=OrderService(store, notifier),
        contact=ContactService(store, notifier),
        admin=AdminService(store, settings.low_stock_threshold),
    )
