# one-time bootstrap of admin accounts and the demo catalog
from __future__ import annotations

from typing import TYPE_CHECKING

from storefront.db import models
from storefront.db.errors import ConflictError
from storefront.utils.logger import get_logger

if TYPE_CHECKING:
    from storefront.db.storage import Storage

_logger = get_logger(__name__)

# placeholder bcrypt hashes; storage never rehashes them
DEFAULT_ADMIN = models.NewUser(
    username="admin",
    email="admin@storefront.local",
    password="$2b$10$EpRnTzVlqHNP0.fUbXUwSOyuiXe/QLSUG6xNekdHgTGmrpHEfIoxm",
    first_name="Admin",
    last_name="User",
    role=models.ROLE_ADMIN,
)

RECOVERY_ADMIN = models.NewUser(
    username="adminGmail",
    email="admin@gmail.com",
    password="$2b$10$dh/iZwZ3vTjqsD7LlvGx2eqAeAm3sJv0lHQJWI4Z8MeClxVn9ZONu",
    first_name="Admin",
    last_name="Gmail",
    role=models.ROLE_ADMIN,
)

_IMG = "https://images.unsplash.com/{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=600&h=500"

DEMO_CATALOG = (
    models.NewProduct(
        name="Organic Apples",
        description="Fresh, locally grown organic apples. Perfect for eating or baking.",
        price=399,
        category="fruits",
        image_url=_IMG.format("photo-1570913149827-d2ac84ab3f9a"),
        unit="lb",
        stock=50,
    ),
    models.NewProduct(
        name="Organic Carrots",
        description="Sweet and crunchy organic carrots freshly harvested from local farms.",
        price=249,
        category="vegetables",
        image_url=_IMG.format("photo-1540420773420-3366772f4999"),
        unit="bunch",
        stock=40,
    ),
    models.NewProduct(
        name="Organic Strawberries",
        description="Sweet and juicy organic strawberries. Perfect for desserts or snacking.",
        price=499,
        category="fruits",
        image_url=_IMG.format("photo-1464965911861-746a04b4bca6"),
        unit="pint",
        stock=30,
    ),
    models.NewProduct(
        name="Organic Spinach",
        description="Fresh organic spinach, rich in nutrients and perfect for salads or cooking.",
        price=349,
        category="vegetables",
        image_url=_IMG.format("photo-1576045057995-568f588f82fb"),
        unit="bunch",
        stock=35,
    ),
    models.NewProduct(
        name="Organic Tomatoes",
        description="Vine-ripened organic tomatoes, bursting with flavor and freshness.",
        price=399,
        category="vegetables",
        image_url=_IMG.format("photo-1592924357228-91a4daadcfea"),
        unit="lb",
        stock=45,
    ),
    models.NewProduct(
        name="Organic Avocados",
        description="Creamy, nutrient-rich organic avocados. Perfect for any meal or snack.",
        price=299,
        category="fruits",
        image_url=_IMG.format("photo-1523049673857-eb18f1d7b578"),
        unit="each",
        stock=38,
    ),
    models.NewProduct(
        name="Organic Kale",
        description="Nutrient-dense organic kale, freshly harvested and ready for your healthy recipes.",
        price=299,
        category="vegetables",
        image_url=_IMG.format("photo-1524179091875-bf99a9a6af57"),
        unit="bunch",
        stock=25,
    ),
    models.NewProduct(
        name="Organic Blueberries",
        description="Sweet, plump organic blueberries packed with antioxidants.",
        price=599,
        category="fruits",
        image_url=_IMG.format("photo-1498557850523-fd3d118b962e"),
        unit="pint",
        stock=20,
    ),
)


async def _create_admin(store: Storage, admin: models.NewUser, label: str) -> int:
    _logger.info(f"Creating {label} admin user...")
    try:
        await store.create_user(admin)
    except ConflictError:
        # an existing account already holds this username or email
        _logger.warning(
            f"Skipping {label} admin: {admin.username} / {admin.email} is taken by another account"
        )
        return 0
    return 1


async def ensure_admins(store: Storage) -> int:
    """Create the default and recovery admins when absent. Returns how many were created.

    An admin whose username or email belongs to some other account is skipped
    with a warning rather than aborting startup.
    """
    created = 0
    if await store.get_user_by_username(DEFAULT_ADMIN.username) is None:
        created += await _create_admin(store, DEFAULT_ADMIN, "default")
    if await store.get_user_by_email(RECOVERY_ADMIN.email) is None:
        created += await _create_admin(store, RECOVERY_ADMIN, "recovery")
    return created


async def seed_products_if_empty(store: Storage) -> int:
    """Insert the demo catalog only into an empty product table."""
    if await store.get_all_products():
        return 0
    _logger.info(f"Seeding {len(DEMO_CATALOG)} initial products...")
    for product in DEMO_CATALOG:
        await store.create_product(product)
    return len(DEMO_CATALOG)


async def bootstrap(store: Storage) -> None:
    await ensure_admins(store)
    await seed_products_if_empty(store)
