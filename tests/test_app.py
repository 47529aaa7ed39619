import os
import tempfile
import unittest
from unittest import mock

from support import RecordingNotifier, new_user

from storefront.app import create_app, open_storage
from storefront.config import Settings
from storefront.db import seed
from storefront.db.memory_store import MemoryStorage
from storefront.db.sqlite_store import SqliteStorage
from storefront.utils.notify import LogNotifier
from storefront.utils.pure import (
    compose_shipping_address,
    format_cents,
    generate_markdown_table,
)
from storefront.utils.state import UserContext


class PureHelpersTest(unittest.TestCase):
    def test_format_cents(self):
        self.assertEqual(format_cents(1397), "$13.97")
        self.assertEqual(format_cents(5), "$0.05")
        self.assertEqual(format_cents(0), "$0.00")
        self.assertEqual(format_cents(-250), "-$2.50")

    def test_compose_shipping_address(self):
        self.assertEqual(
            compose_shipping_address(
                "Ada", "Lovelace", "12 Loom Rd", "London", "LDN", "N1", "555-0100"
            ),
            "Ada Lovelace, 12 Loom Rd, London, LDN N1. Phone: 555-0100",
        )

    def test_markdown_table(self):
        md = generate_markdown_table(["A", "B"], [[1, 2]], ["l", "r"])
        self.assertEqual(md, "| A | B |\n| :--- | ---: |\n| 1 | 2 |")
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])


class SettingsTest(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.backend, "sqlite")
        self.assertEqual(settings.low_stock_threshold, 5)
        self.assertEqual(settings.free_shipping_min, 5000)

    def test_from_env(self):
        env = {
            "STOREFRONT_BACKEND": " Memory ",
            "STOREFRONT_DB_PATH": "/tmp/x.sqlite",
            "STOREFRONT_LOW_STOCK": "3",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.backend, "memory")
        self.assertEqual(settings.db_path, "/tmp/x.sqlite")
        self.assertEqual(settings.low_stock_threshold, 3)

    def test_bad_integer(self):
        with mock.patch.dict(os.environ, {"STOREFRONT_SHIPPING_FEE": "lots"}, clear=True):
            with self.assertRaises(ValueError):
                Settings.from_env()


class AppTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_backend_chosen_by_configuration(self):
        memory = await open_storage(Settings(backend="memory"))
        self.assertIsInstance(memory, MemoryStorage)

        path = os.path.join(self.temp_dir.name, "nested", "shop.sqlite")
        sqlite = await open_storage(Settings(backend="sqlite", db_path=path))
        self.assertIsInstance(sqlite, SqliteStorage)
        self.assertTrue(os.path.exists(path))

        with self.assertRaises(ValueError):
            await open_storage(Settings(backend="postgres"))

    async def test_open_storage_bootstraps(self):
        store = await open_storage(Settings(backend="memory"))
        self.assertEqual(len(await store.get_all_products()), len(seed.DEMO_CATALOG))
        self.assertIsNotNone(await store.get_user_by_username("admin"))

    async def test_end_to_end_checkout(self):
        notifier = RecordingNotifier()
        app = await create_app(Settings(backend="memory"), notifier)
        user = await app.store.create_user(new_user("alice"))
        ctx = UserContext(user.id)

        listings = await app.catalog.list_products(category="fruits")
        apples, berries = listings[0].product, listings[-1].product
        await app.cart.add_to_cart(ctx, apples.id, 2)
        await app.cart.add_to_cart(ctx, berries.id, 1)
        summary = await app.cart.summary(ctx)

        order = await app.orders.place_order(ctx, "1 Main St")
        self.assertEqual(order.total_amount, summary.total_price)
        self.assertEqual(len(notifier.orders), 1)
        self.assertTrue((await app.cart.summary(ctx)).is_empty)

    async def test_log_notifier_renders_confirmation(self):
        app = await create_app(Settings(backend="memory"))
        self.assertIsInstance(app.orders.notifier, LogNotifier)
        user = await app.store.create_user(new_user("alice"))
        ctx = UserContext(user.id)
        apples = (await app.store.get_all_products())[0]
        await app.cart.add_to_cart(ctx, apples.id, 2)

        with self.assertLogs("storefront.utils.notify", level="INFO") as logs:
            order = await app.orders.place_order(ctx, "1 Main St")
        body = "\n".join(logs.output)
        self.assertIn(f"Order Confirmation #{order.id}", body)
        self.assertIn("Organic Apples", body)
        self.assertIn("$7.98", body)


if __name__ == "__main__":
    unittest.main()
