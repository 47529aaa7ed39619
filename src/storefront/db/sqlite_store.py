from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Mapping, Optional, Sequence

import aiosqlite

from storefront.db import models
from storefront.db.database import Database
from storefront.db.errors import ConflictError
from storefront.db.storage import Storage, advance, normalize_user, pick_fields, utcnow

USER_COLUMNS = "id, username, email, password, first_name, last_name, role"
PRODUCT_COLUMNS = (
    "id, name, description, price, category, image_url, unit, stock, created_at"
)
CART_COLUMNS = "id, user_id, product_id, quantity, added_at"
ORDER_COLUMNS = (
    "id, user_id, total_amount, status, shipping_address, created_at, updated_at"
)
ORDER_ITEM_COLUMNS = "id, order_id, product_id, quantity, price"
MESSAGE_COLUMNS = "id, name, email, subject, message, created_at, read_at"


def _ts(value: datetime) -> str:
    # fixed width so text ordering matches time ordering
    return value.isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _user(row) -> models.User:
    return models.User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password=row["password"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        role=row["role"],
    )


def _product(row) -> models.Product:
    return models.Product(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        price=int(row["price"]),
        category=row["category"],
        image_url=row["image_url"],
        unit=row["unit"],
        stock=int(row["stock"]),
        created_at=_parse_ts(row["created_at"]),
    )


def _cart_item(row) -> models.CartItem:
    return models.CartItem(
        id=row["id"],
        user_id=row["user_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        added_at=_parse_ts(row["added_at"]),
    )


def _order(row) -> models.Order:
    return models.Order(
        id=row["id"],
        user_id=row["user_id"],
        total_amount=int(row["total_amount"]),
        status=row["status"],
        shipping_address=row["shipping_address"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _order_item(row) -> models.OrderItem:
    return models.OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        price=int(row["price"]),
    )


def _message(row) -> models.ContactMessage:
    return models.ContactMessage(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        subject=row["subject"],
        message=row["message"],
        created_at=_parse_ts(row["created_at"]),
        read_at=_parse_ts(row["read_at"]),
    )


async def _fetchone(conn: aiosqlite.Connection, sql: str, params: tuple = ()):
    cur = await conn.execute(sql, params)
    row = await cur.fetchone()
    await cur.close()
    return row


async def _fetchall(conn: aiosqlite.Connection, sql: str, params: tuple = ()):
    cur = await conn.execute(sql, params)
    rows = await cur.fetchall()
    await cur.close()
    return rows


class SqliteStorage(Storage):
    """Durable storage backed by a single SQLite file through aiosqlite."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.db = Database(path)

    # ---------------------------
    # Users
    # ---------------------------

    async def get_user(self, id: int) -> Optional[models.User]:
        async with self.db.connect() as conn:
            row = await _fetchone(
                conn, f"SELECT {USER_COLUMNS} FROM users WHERE id = ?;", (id,)
            )
        return _user(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[models.User]:
        async with self.db.connect() as conn:
            row = await _fetchone(
                conn,
                f"SELECT {USER_COLUMNS} FROM users WHERE username = ?;",
                (username.lower(),),
            )
        return _user(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[models.User]:
        async with self.db.connect() as conn:
            row = await _fetchone(
                conn,
                f"SELECT {USER_COLUMNS} FROM users WHERE email = ?;",
                (email.lower(),),
            )
        return _user(row) if row else None

    async def get_all_users(self) -> List[models.User]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn, f"SELECT {USER_COLUMNS} FROM users ORDER BY id;"
            )
        return [_user(row) for row in rows]

    async def create_user(self, user: models.NewUser) -> models.User:
        user = normalize_user(user)
        try:
            async with self.db.transaction() as conn:
                cur = await conn.execute(
                    """
                    INSERT INTO users(username, email, password, first_name, last_name, role)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        user.username,
                        user.email,
                        user.password,
                        user.first_name,
                        user.last_name,
                        user.role,
                    ),
                )
                new_id = cur.lastrowid
                await cur.close()
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            raise ConflictError("Username or email already exists.") from e
        return models.User(id=new_id, **vars(user))

    async def update_user(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.User]:
        fields = pick_fields(data, models.USER_FIELDS, models.USER_NULLABLE)
        if fields:
            assignments = ", ".join(f"{key} = ?" for key in fields)
            try:
                async with self.db.transaction() as conn:
                    await conn.execute(
                        f"UPDATE users SET {assignments} WHERE id = ?;",
                        (*fields.values(), id),
                    )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" not in str(e):
                    raise
                raise ConflictError("Username or email already exists.") from e
        return await self.get_user(id)

    # ---------------------------
    # Products
    # ---------------------------

    async def get_product(self, id: int) -> Optional[models.Product]:
        async with self.db.connect() as conn:
            row = await _fetchone(
                conn, f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?;", (id,)
            )
        return _product(row) if row else None

    async def get_all_products(self) -> List[models.Product]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn, f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY id;"
            )
        return [_product(row) for row in rows]

    async def get_products_by_category(self, category: str) -> List[models.Product]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE category = ? ORDER BY id;",
                (category,),
            )
        return [_product(row) for row in rows]

    async def create_product(self, product: models.NewProduct) -> models.Product:
        created_at = utcnow()
        async with self.db.transaction() as conn:
            cur = await conn.execute(
                """
                INSERT INTO products(name, description, price, category, image_url, unit, stock, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    product.name,
                    product.description,
                    product.price,
                    product.category,
                    product.image_url,
                    product.unit,
                    product.stock,
                    _ts(created_at),
                ),
            )
            new_id = cur.lastrowid
            await cur.close()
        return models.Product(id=new_id, created_at=created_at, **vars(product))

    async def update_product(
        self, id: int, data: Mapping[str, object]
    ) -> Optional[models.Product]:
        fields = pick_fields(data, models.PRODUCT_FIELDS)
        if fields:
            assignments = ", ".join(f"{key} = ?" for key in fields)
            async with self.db.transaction() as conn:
                await conn.execute(
                    f"UPDATE products SET {assignments} WHERE id = ?;",
                    (*fields.values(), id),
                )
        return await self.get_product(id)

    async def delete_product(self, id: int) -> bool:
        async with self.db.transaction() as conn:
            cur = await conn.execute("DELETE FROM products WHERE id = ?;", (id,))
            removed = cur.rowcount > 0
            await cur.close()
        return removed

    # ---------------------------
    # Cart
    # ---------------------------

    async def get_cart_items(self, user_id: int) -> List[models.CartItem]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"SELECT {CART_COLUMNS} FROM cart_items WHERE user_id = ? ORDER BY id;",
                (user_id,),
            )
        return [_cart_item(row) for row in rows]

    async def add_to_cart(self, item: models.NewCartItem) -> models.CartItem:
        async with self.db.transaction() as conn:
            # one row per (user, product): a duplicate add sums into it
            await conn.execute(
                """
                INSERT INTO cart_items(user_id, product_id, quantity, added_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, product_id)
                DO UPDATE SET quantity = quantity + excluded.quantity;
                """,
                (item.user_id, item.product_id, item.quantity, _ts(utcnow())),
            )
            row = await _fetchone(
                conn,
                f"SELECT {CART_COLUMNS} FROM cart_items WHERE user_id = ? AND product_id = ?;",
                (item.user_id, item.product_id),
            )
        return _cart_item(row)

    async def update_cart_item_quantity(
        self, id: int, quantity: int
    ) -> Optional[models.CartItem]:
        async with self.db.transaction() as conn:
            await conn.execute(
                "UPDATE cart_items SET quantity = ? WHERE id = ?;", (quantity, id)
            )
            row = await _fetchone(
                conn, f"SELECT {CART_COLUMNS} FROM cart_items WHERE id = ?;", (id,)
            )
        return _cart_item(row) if row else None

    async def remove_from_cart(self, id: int) -> bool:
        async with self.db.transaction() as conn:
            cur = await conn.execute("DELETE FROM cart_items WHERE id = ?;", (id,))
            removed = cur.rowcount > 0
            await cur.close()
        return removed

    async def clear_cart(self, user_id: int) -> bool:
        async with self.db.transaction() as conn:
            await conn.execute("DELETE FROM cart_items WHERE user_id = ?;", (user_id,))
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
        created_at = utcnow()
        async with self.db.transaction() as conn:
            cur = await conn.execute(
                """
                INSERT INTO orders(user_id, total_amount, status, shipping_address, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    order.user_id,
                    order.total_amount,
                    order.status,
                    order.shipping_address,
                    _ts(created_at),
                    _ts(created_at),
                ),
            )
            order_id = cur.lastrowid
            await cur.close()
            await conn.executemany(
                "INSERT INTO order_items(order_id, product_id, quantity, price) VALUES (?, ?, ?, ?);",
                [(order_id, it.product_id, it.quantity, it.price) for it in items],
            )
            # a row merged into after the snapshot no longer matches and survives
            await conn.executemany(
                "DELETE FROM cart_items WHERE id = ? AND user_id = ? AND quantity = ?;",
                [(it.id, order.user_id, it.quantity) for it in consume],
            )
        return models.Order(
            id=order_id,
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            created_at=created_at,
            updated_at=created_at,
        )

    async def get_order(self, id: int) -> Optional[models.Order]:
        async with self.db.connect() as conn:
            row = await _fetchone(
                conn, f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?;", (id,)
            )
        return _order(row) if row else None

    async def get_order_items(self, order_id: int) -> List[models.OrderItem]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"SELECT {ORDER_ITEM_COLUMNS} FROM order_items WHERE order_id = ? ORDER BY id;",
                (order_id,),
            )
        return [_order_item(row) for row in rows]

    async def get_user_orders(self, user_id: int) -> List[models.Order]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC;
                """,
                (user_id,),
            )
        return [_order(row) for row in rows]

    async def get_all_orders(self) -> List[models.Order]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"SELECT {ORDER_COLUMNS} FROM orders ORDER BY created_at DESC, id DESC;",
            )
        return [_order(row) for row in rows]

    async def update_order_status(
        self, id: int, status: str
    ) -> Optional[models.Order]:
        async with self.db.transaction() as conn:
            row = await _fetchone(
                conn, f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?;", (id,)
            )
            if not row:
                return None
            current = _order(row)
            updated_at = advance(current.updated_at)
            await conn.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?;",
                (status, _ts(updated_at), id),
            )
        return models.Order(
            id=current.id,
            user_id=current.user_id,
            total_amount=current.total_amount,
            status=status,
            shipping_address=current.shipping_address,
            created_at=current.created_at,
            updated_at=updated_at,
        )

    # ---------------------------
    # Contact messages
    # ---------------------------

    async def create_contact_message(
        self, message: models.NewContactMessage
    ) -> models.ContactMessage:
        created_at = utcnow()
        async with self.db.transaction() as conn:
            cur = await conn.execute(
                """
                INSERT INTO contact_messages(name, email, subject, message, created_at)
                VALUES (?, ?, ?, ?, ?);
                """,
                (
                    message.name,
                    message.email,
                    message.subject,
                    message.message,
                    _ts(created_at),
                ),
            )
            new_id = cur.lastrowid
            await cur.close()
        return models.ContactMessage(id=new_id, created_at=created_at, **vars(message))

    async def get_all_contact_messages(self) -> List[models.ContactMessage]:
        async with self.db.connect() as conn:
            rows = await _fetchall(
                conn,
                f"SELECT {MESSAGE_COLUMNS} FROM contact_messages ORDER BY created_at DESC, id DESC;",
            )
        return [_message(row) for row in rows]

    async def mark_contact_message_read(
        self, id: int
    ) -> Optional[models.ContactMessage]:
        async with self.db.transaction() as conn:
            await conn.execute(
                "UPDATE contact_messages SET read_at = ? WHERE id = ? AND read_at IS NULL;",
                (_ts(utcnow()), id),
            )
            row = await _fetchone(
                conn,
                f"SELECT {MESSAGE_COLUMNS} FROM contact_messages WHERE id = ?;",
                (id,),
            )
        return _message(row) if row else None
