# orders/handlers.py
import logging

from core.domain.dispatcher import DomainEventDispatcher
from core.services.notifications import NotificationDispatcher
from orders.domain import (
    EditRequestCreated,
    EditRequestResolved,
    OrderAssigned,
    OrderPlaced,
    OrderStatusChanged,
)
from orders.models import EditRequest

logger = logging.getLogger(__name__)


def register_handlers(dispatcher: DomainEventDispatcher, notifier: NotificationDispatcher) -> None:
    """
    Wire order events to their notifications on one engine's dispatcher.
    """

    @dispatcher.register_handler(OrderPlaced)
    async def handle_order_placed(event: OrderPlaced) -> None:
        await notifier.notify_about_new_order(event.order, event.customer_name)

    @dispatcher.register_handler(OrderAssigned)
    async def handle_order_assigned(event: OrderAssigned) -> None:
        logger.info(
            "Order %s: %s set to %s",
            event.order["id"],
            event.field,
            event.assignee_id,
        )
        await notifier.notify_about_assignment(event.assignee_id, event.order)

    @dispatcher.register_handler(OrderStatusChanged)
    async def handle_order_status_changed(event: OrderStatusChanged) -> None:
        logger.info(
            "Order %s: %s -> %s",
            event.order["id"],
            event.previous_status,
            event.new_status,
        )
        await notifier.notify_about_order_status_change(event.order, event.new_status)

    @dispatcher.register_handler(EditRequestCreated)
    async def handle_edit_request_created(event: EditRequestCreated) -> None:
        await notifier.notify_about_edit_request(event.order)

    @dispatcher.register_handler(EditRequestResolved)
    async def handle_edit_request_resolved(event: EditRequestResolved) -> None:
        if event.status not in (EditRequest.Status.APPROVED, EditRequest.Status.REJECTED):
            return
        await notifier.notify_customer_about_edit_request_response(event.order, event.status)
