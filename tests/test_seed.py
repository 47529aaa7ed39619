import unittest

from support import MemoryBackend, SqliteBackend, new_product, new_user

from storefront.db import seed


class SeedContract:
    async def asyncSetUp(self):
        self.store = self.make_store()

    async def test_bootstrap_creates_admins_and_catalog(self):
        await seed.bootstrap(self.store)

        users = await self.store.get_all_users()
        self.assertEqual(len(users), 2)
        self.assertTrue(all(u.is_admin for u in users))
        self.assertIsNotNone(await self.store.get_user_by_username("admin"))
        # usernames are stored lowercase
        self.assertIsNotNone(await self.store.get_user_by_username("admingmail"))
        self.assertIsNotNone(await self.store.get_user_by_email("admin@gmail.com"))

        products = await self.store.get_all_products()
        self.assertEqual(len(products), len(seed.DEMO_CATALOG))
        self.assertEqual(products[0].name, "Organic Apples")
        self.assertEqual(products[0].price, 399)

    async def test_bootstrap_twice_is_idempotent(self):
        await seed.bootstrap(self.store)
        await seed.bootstrap(self.store)
        self.assertEqual(len(await self.store.get_all_users()), 2)
        self.assertEqual(len(await self.store.get_all_products()), len(seed.DEMO_CATALOG))

    async def test_initialize_runs_once_per_instance(self):
        await self.store.initialize()
        await self.store.delete_product((await self.store.get_all_products())[0].id)
        await self.store.initialize()
        self.assertEqual(
            len(await self.store.get_all_products()), len(seed.DEMO_CATALOG) - 1
        )

    async def test_existing_catalog_is_left_alone(self):
        await self.store.create_product(new_product("House Honey"))
        self.assertEqual(await seed.seed_products_if_empty(self.store), 0)
        self.assertEqual(len(await self.store.get_all_products()), 1)

    async def test_only_missing_admin_is_created(self):
        await self.store.create_user(seed.RECOVERY_ADMIN)
        self.assertEqual(await seed.ensure_admins(self.store), 1)
        self.assertEqual(await seed.ensure_admins(self.store), 0)
        self.assertEqual(len(await self.store.get_all_users()), 2)

    async def test_customer_holding_admin_email_does_not_abort_startup(self):
        squatter = await self.store.create_user(
            new_user("squatter", email=seed.DEFAULT_ADMIN.email)
        )
        with self.assertLogs("storefront.db.seed", level="WARNING") as logs:
            await self.store.initialize()
        self.assertIn("default admin", "\n".join(logs.output))

        # the default admin is skipped, the rest of bootstrap still runs
        self.assertIsNone(await self.store.get_user_by_username("admin"))
        self.assertEqual(await self.store.get_user(squatter.id), squatter)
        self.assertIsNotNone(await self.store.get_user_by_email(seed.RECOVERY_ADMIN.email))
        self.assertEqual(len(await self.store.get_all_products()), len(seed.DEMO_CATALOG))

    async def test_customer_holding_recovery_username_is_skipped(self):
        await self.store.create_user(new_user("AdminGmail"))
        with self.assertLogs("storefront.db.seed", level="WARNING"):
            self.assertEqual(await seed.ensure_admins(self.store), 1)
        self.assertIsNotNone(await self.store.get_user_by_username("admin"))
        self.assertIsNone(await self.store.get_user_by_email(seed.RECOVERY_ADMIN.email))


class MemorySeedTest(MemoryBackend, SeedContract, unittest.IsolatedAsyncioTestCase):
    pass


class SqliteSeedTest(SqliteBackend, SeedContract, unittest.IsolatedAsyncioTestCase):
    async def test_reopened_database_is_not_reseeded(self):
        await self.store.initialize()
        reopened = self.make_store()
        await reopened.initialize()
        self.assertEqual(len(await reopened.get_all_users()), 2)
        self.assertEqual(
            len(await reopened.get_all_products()), len(seed.DEMO_CATALOG)
        )


if __name__ == "__main__":
    unittest.main()
