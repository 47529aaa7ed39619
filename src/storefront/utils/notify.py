# outbound notifications (contact form, order confirmation)
from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Optional, Sequence

from storefront.db import models
from storefront.db.errors import NotificationFailure
from storefront.utils.logger import get_logger
from storefront.utils.pure import format_cents, generate_markdown_table

if TYPE_CHECKING:
    from storefront.db.storage import Storage

_logger = get_logger(__name__)


class NotificationSink:
    """
    Receiver of fire-and-forget notifications.

    The base class drops everything; subclasses deliver somewhere.
    """

    async def notify_contact_message(self, message: models.ContactMessage) -> None:
        return None

    async def notify_order_confirmation(
        self,
        user: models.User,
        order: models.Order,
        items: Sequence[models.OrderItem],
    ) -> None:
        return None


class LogNotifier(NotificationSink):
    """Writes notifications to the log instead of sending mail."""

    def __init__(self, store: Optional[Storage] = None) -> None:
        self.store = store

    async def notify_contact_message(self, message: models.ContactMessage) -> None:
        _logger.info(
            f"Contact form: '{message.subject}' from {message.name} <{message.email}>"
        )

    async def _product_name(self, product_id: int) -> str:
        product = await self.store.get_product(product_id) if self.store else None
        return product.name if product else f"#{product_id}"

    async def render_order_confirmation(
        self,
        user: models.User,
        order: models.Order,
        items: Sequence[models.OrderItem],
    ) -> str:
        rows = [
            [
                await self._product_name(item.product_id),
                item.quantity,
                format_cents(item.price),
                format_cents(item.line_total),
            ]
            for item in items
        ]
        table = generate_markdown_table(
            ["Product", "Quantity", "Price", "Total"], rows, ["l", "c", "r", "r"]
        )
        return (
            f"### Order Confirmation #{order.id}\n\n"
            f"Dear {user.first_name or user.username},\n\n"
            f"**Status:** {order.status}  \n"
            f"**Shipping Address:** {order.shipping_address}\n\n"
            f"{table}\n\n"
            f"**Order Total:** {format_cents(order.total_amount)}"
        )

    async def notify_order_confirmation(
        self,
        user: models.User,
        order: models.Order,
        items: Sequence[models.OrderItem],
    ) -> None:
        body = await self.render_order_confirmation(user, order, items)
        _logger.info(f"Order confirmation for {user.email}:\n{body}")


async def deliver(what: str, pending: Awaitable[None]) -> bool:
    """
    Await a notification, logging and swallowing any failure.

    Returns False when delivery failed.
    """
    try:
        await pending
    except Exception as e:
        failure = NotificationFailure(f"{what} notification failed: {e}")
        _logger.error(str(failure), exc_info=e)
        return False
    return True
