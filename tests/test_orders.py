import asyncio
import unittest

from support import (
    MemoryBackend,
    RecordingNotifier,
    SqliteBackend,
    new_product,
    new_user,
)

from storefront.db.errors import (
    EmptyCartError,
    ForbiddenError,
    InvalidCartStateError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from storefront.services.cart import CartService
from storefront.services.orders import OrderService
from storefront.utils.state import UserContext


class OrderContract:
    async def asyncSetUp(self):
        self.store = self.make_store()
        self.notifier = RecordingNotifier()
        self.cart = CartService(self.store)
        self.orders = OrderService(self.store, self.notifier)
        alice = await self.store.create_user(new_user("alice"))
        bob = await self.store.create_user(new_user("bob"))
        admin = await self.store.create_user(new_user("root", role="admin"))
        self.alice = UserContext(alice.id)
        self.bob = UserContext(bob.id)
        self.admin = UserContext(admin.id, "admin")
        self.apples = await self.store.create_product(new_product("Apples", 399))
        self.berries = await self.store.create_product(new_product("Blueberries", 599))

    async def _fill_cart(self):
        await self.cart.add_to_cart(self.alice, self.apples.id, 2)
        await self.cart.add_to_cart(self.alice, self.berries.id, 1)

    # ---------- Checkout ----------

    async def test_place_order_snapshots_prices_and_clears_cart(self):
        await self._fill_cart()
        order = await self.orders.place_order(self.alice, "  1 Main St  ")
        self.assertEqual(order.total_amount, 1397)
        self.assertEqual(order.status, "pending")
        self.assertEqual(order.shipping_address, "1 Main St")
        self.assertEqual(order.user_id, self.alice.user_id)

        items = await self.store.get_order_items(order.id)
        self.assertEqual(
            sorted((i.product_id, i.quantity, i.price) for i in items),
            sorted([(self.apples.id, 2, 399), (self.berries.id, 1, 599)]),
        )
        self.assertEqual(await self.store.get_cart_items(self.alice.user_id), [])

        # later price edits do not reach the order
        await self.store.update_product(self.apples.id, {"price": 999})
        items_after = await self.store.get_order_items(order.id)
        self.assertEqual(items_after, items)
        self.assertEqual((await self.store.get_order(order.id)).total_amount, 1397)

    async def test_order_uses_price_at_checkout_time(self):
        await self._fill_cart()
        await self.store.update_product(self.apples.id, {"price": 450})
        order = await self.orders.place_order(self.alice, "1 Main St")
        self.assertEqual(order.total_amount, 450 * 2 + 599)

    async def test_empty_cart_creates_nothing(self):
        with self.assertRaises(EmptyCartError):
            await self.orders.place_order(self.alice, "1 Main St")
        self.assertEqual(await self.store.get_all_orders(), [])
        self.assertEqual(self.notifier.orders, [])

    async def test_deleted_product_fails_whole_order(self):
        await self._fill_cart()
        await self.store.delete_product(self.berries.id)
        with self.assertRaises(InvalidCartStateError) as ctx:
            await self.orders.place_order(self.alice, "1 Main St")
        self.assertEqual(ctx.exception.product_id, self.berries.id)
        self.assertEqual(await self.store.get_all_orders(), [])
        self.assertEqual(len(await self.store.get_cart_items(self.alice.user_id)), 2)

    async def test_requires_login_and_address(self):
        await self._fill_cart()
        with self.assertRaises(UnauthenticatedError):
            await self.orders.place_order(None, "1 Main St")
        with self.assertRaises(ValidationError):
            await self.orders.place_order(self.alice, "   ")
        self.assertEqual(await self.store.get_all_orders(), [])

    async def test_confirmation_is_sent(self):
        await self._fill_cart()
        order = await self.orders.place_order(self.alice, "1 Main St")
        self.assertEqual(len(self.notifier.orders), 1)
        user, sent_order, items = self.notifier.orders[0]
        self.assertEqual(user.id, self.alice.user_id)
        self.assertEqual(sent_order.id, order.id)
        self.assertEqual(len(items), 2)

    async def test_notification_failure_keeps_order(self):
        self.orders.notifier = RecordingNotifier(fail=True)
        await self._fill_cart()
        with self.assertLogs("storefront.utils.notify", level="ERROR"):
            order = await self.orders.place_order(self.alice, "1 Main St")
        self.assertEqual(await self.store.get_order(order.id), order)
        self.assertEqual(await self.store.get_cart_items(self.alice.user_id), [])

    async def test_concurrent_checkouts_create_one_order(self):
        await self._fill_cart()
        results = await asyncio.gather(
            self.orders.place_order(self.alice, "1 Main St"),
            self.orders.place_order(self.alice, "1 Main St"),
            return_exceptions=True,
        )
        placed = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(placed), 1)
        self.assertEqual(len(failed), 1)
        self.assertIsInstance(failed[0], EmptyCartError)
        self.assertEqual(len(await self.store.get_user_orders(self.alice.user_id)), 1)
        self.assertEqual(self.store._checkout_locks, {})

    async def test_item_added_during_checkout_is_never_lost(self):
        await self.cart.add_to_cart(self.alice, self.apples.id, 2)
        kale = await self.store.create_product(new_product("Kale", 299, "vegetables"))
        order, _ = await asyncio.gather(
            self.orders.place_order(self.alice, "1 Main St"),
            self.cart.add_to_cart(self.alice, kale.id, 1),
        )

        ordered = [i.product_id for i in await self.store.get_order_items(order.id)]
        in_cart = [i.product_id for i in await self.store.get_cart_items(self.alice.user_id)]
        # kale lands in exactly one of the two
        self.assertEqual((ordered + in_cart).count(kale.id), 1)
        self.assertIn(self.apples.id, ordered)
        self.assertNotIn(self.apples.id, in_cart)

    async def test_quantity_merged_during_checkout_is_never_lost(self):
        await self.cart.add_to_cart(self.alice, self.apples.id, 2)
        order, _ = await asyncio.gather(
            self.orders.place_order(self.alice, "1 Main St"),
            self.cart.add_to_cart(self.alice, self.apples.id, 1),
        )

        ordered = sum(i.quantity for i in await self.store.get_order_items(order.id))
        in_cart = sum(i.quantity for i in await self.store.get_cart_items(self.alice.user_id))
        self.assertEqual(ordered + in_cart, 3)
        self.assertEqual(order.total_amount, ordered * self.apples.price)

    # ---------- Queries ----------

    async def test_list_and_detail_visibility(self):
        await self._fill_cart()
        first = await self.orders.place_order(self.alice, "1 Main St")
        await self.cart.add_to_cart(self.alice, self.apples.id, 1)
        second = await self.orders.place_order(self.alice, "1 Main St")

        listed = await self.orders.list_orders(self.alice)
        self.assertEqual([o.id for o in listed], [second.id, first.id])
        self.assertEqual(await self.orders.list_orders(self.bob), [])

        detail = await self.orders.get_order_detail(self.alice, first.id)
        self.assertEqual(detail.order.id, first.id)
        self.assertEqual(len(detail.items), 2)
        self.assertIsNone(await self.orders.get_order_detail(self.bob, first.id))
        self.assertIsNotNone(await self.orders.get_order_detail(self.admin, first.id))
        self.assertIsNone(await self.orders.get_order_detail(self.alice, 424242))

    # ---------- Status ----------

    async def test_set_status(self):
        await self._fill_cart()
        order = await self.orders.place_order(self.alice, "1 Main St")
        items = await self.store.get_order_items(order.id)

        updated = await self.orders.set_status(self.admin, order.id, "Shipped")
        self.assertEqual(updated.status, "shipped")
        self.assertGreater(updated.updated_at, order.updated_at)
        self.assertEqual(updated.created_at, order.created_at)
        self.assertEqual(updated.total_amount, order.total_amount)
        self.assertEqual(await self.store.get_order_items(order.id), items)

        with self.assertRaises(ForbiddenError):
            await self.orders.set_status(self.alice, order.id, "delivered")
        with self.assertRaises(ValidationError):
            await self.orders.set_status(self.admin, order.id, "lost")
        with self.assertRaises(NotFoundError):
            await self.orders.set_status(self.admin, 424242, "delivered")


class MemoryOrderTest(MemoryBackend, OrderContract, unittest.IsolatedAsyncioTestCase):
    pass


class SqliteOrderTest(SqliteBackend, OrderContract, unittest.IsolatedAsyncioTestCase):
    pass


if __name__ == "__main__":
    unittest.main()
