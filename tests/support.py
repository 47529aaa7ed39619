import os
import sys
import tempfile

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from storefront.db import models  # noqa: E402
from storefront.db.memory_store import MemoryStorage  # noqa: E402
from storefront.db.sqlite_store import SqliteStorage  # noqa: E402
from storefront.utils.notify import NotificationSink  # noqa: E402


class MemoryBackend:
    """Mixin: tests run against a fresh MemoryStorage."""

    backend = "memory"

    def make_store(self):
        return MemoryStorage()


class SqliteBackend:
    """Mixin: tests run against a fresh SQLite file in a temp directory."""

    backend = "sqlite"

    def setUp(self):
        super().setUp()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")

    def tearDown(self):
        self.temp_dir.cleanup()
        super().tearDown()

    def make_store(self):
        return SqliteStorage(self.db_path)


def new_product(name="Apples", price=399, category="fruits", stock=10, unit="lb"):
    return models.NewProduct(
        name=name,
        description=f"Fresh {name.lower()}",
        price=price,
        category=category,
        image_url=f"https://img.example/{name.lower()}.jpg",
        unit=unit,
        stock=stock,
    )


def new_user(username="alice", email=None, role="customer"):
    return models.NewUser(
        username=username,
        email=email or f"{username.lower()}@example.com",
        password="$2b$10$hash",
        first_name=username.capitalize(),
        role=role,
    )


class RecordingNotifier(NotificationSink):
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []
        self.messages = []

    async def notify_contact_message(self, message):
        if self.fail:
            raise ConnectionError("smtp down")
        self.messages.append(message)

    async def notify_order_confirmation(self, user, order, items):
        if self.fail:
            raise ConnectionError("smtp down")
        self.orders.append((user, order, list(items)))
