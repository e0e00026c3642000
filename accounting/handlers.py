# accounting/handlers.py
import logging

from accounting.domain import InvoiceCreated, InvoiceStatusChanged
from core.domain.dispatcher import DomainEventDispatcher
from core.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def register_handlers(dispatcher: DomainEventDispatcher, notifier: NotificationDispatcher) -> None:
    """
    Wire invoice events to their notifications on one engine's dispatcher.
    """

    @dispatcher.register_handler(InvoiceCreated)
    async def handle_invoice_created(event: InvoiceCreated) -> None:
        logger.info(
            "InvoiceCreated event: id=%s, customer_id=%s",
            event.invoice["id"],
            event.invoice["customer_id"],
        )
        await notifier.notify_about_invoice_created(event.invoice)

    @dispatcher.register_handler(InvoiceStatusChanged)
    async def handle_invoice_status_changed(event: InvoiceStatusChanged) -> None:
        logger.info(
            "Invoice %s: %s -> %s",
            event.invoice["id"],
            event.previous_status,
            event.new_status,
        )
        await notifier.notify_about_invoice_status_change(event.invoice, event.new_status)
