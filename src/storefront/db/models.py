# provide dataclass models

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

ORDER_STATUSES = (
    "pending",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "completed",
)

# fields a partial update is allowed to touch
USER_FIELDS = ("username", "email", "password", "first_name", "last_name", "role")
USER_NULLABLE = ("first_name", "last_name")
PRODUCT_FIELDS = (
    "name",
    "description",
    "price",
    "category",
    "image_url",
    "unit",
    "stock",
)


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str
    password: str  # opaque hash, never touched by storage
    first_name: Optional[str]
    last_name: Optional[str]
    role: str  # "customer" or "admin"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    description: str
    price: int  # minor currency unit
    category: str
    image_url: str
    unit: str  # "lb", "bunch", "each", ...
    stock: int
    created_at: datetime


@dataclass(frozen=True)
class CartItem:
    id: int
    user_id: int
    product_id: int
    quantity: int
    added_at: datetime


@dataclass(frozen=True)
class Order:
    id: int
    user_id: int
    total_amount: int  # snapshot at creation time
    status: str
    shipping_address: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class OrderItem:
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: int  # unit price at time of order

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


@dataclass(frozen=True)
class ContactMessage:
    id: int
    name: str
    email: str
    subject: str
    message: str
    created_at: datetime
    read_at: Optional[datetime] = None


# ---------------------------
# Insert payloads
# ---------------------------


@dataclass(frozen=True)
class NewUser:
    username: str
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = ROLE_CUSTOMER


@dataclass(frozen=True)
class NewProduct:
    name: str
    description: str
    price: int
    category: str
    image_url: str
    unit: str
    stock: int = 0


@dataclass(frozen=True)
class NewCartItem:
    user_id: int
    product_id: int
    quantity: int


@dataclass(frozen=True)
class NewOrder:
    user_id: int
    total_amount: int
    shipping_address: str
    status: str = "pending"


@dataclass(frozen=True)
class NewOrderItem:
    product_id: int
    quantity: int
    price: int


@dataclass(frozen=True)
class NewContactMessage:
    name: str
    email: str
    subject: str
    message: str
