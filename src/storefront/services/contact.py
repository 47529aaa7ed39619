from __future__ import annotations

import re
from typing import Optional

from storefront.db import models
from storefront.db.errors import ValidationError
from storefront.db.storage import Storage
from storefront.utils.logger import get_logger
from storefront.utils.notify import NotificationSink, deliver

_logger = get_logger(__name__)

_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def validate_email(addr: str) -> bool:
    return bool(addr and _EMAIL_RE.match(addr))


class ContactService:
    def __init__(self, store: Storage, notifier: Optional[NotificationSink] = None) -> None:
        self.store = store
        self.notifier = notifier or NotificationSink()

    async def submit(
        self, name: str, email: str, subject: str, message: str
    ) -> models.ContactMessage:
        """Store a public contact form submission, then notify best-effort."""
        fields = {
            "name": (name or "").strip(),
            "email": (email or "").strip(),
            "subject": (subject or "").strip(),
            "message": (message or "").strip(),
        }
        for key, value in fields.items():
            if not value:
                raise ValidationError(f"{key} is required.")
        if not validate_email(fields["email"]):
            raise ValidationError("Please enter a valid email address.")

        stored = await self.store.create_contact_message(models.NewContactMessage(**fields))
        _logger.info(f"Contact message #{stored.id} received")
        await deliver("Contact", self.notifier.notify_contact_message(stored))
        return stored
