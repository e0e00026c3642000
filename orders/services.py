# orders/services.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from core.actors import ActorContext, Role
from core.domain.dispatcher import DomainEventDispatcher
from core.errors import RecordNotFound, StorageError
from core.results import Err, Ok, Rejection, Result
from core.services.numbering import agenerate_number
from .domain import OrderAssigned, OrderPlaced, OrderStatusChanged
from .models import Order
from .patches import OrderPatch, parse_amount, to_decimal
from .validators import normalize_reference, validate

logger = logging.getLogger(__name__)

ORDERS = "orders"
CUSTOMERS = "customers"
EMPLOYEES = "employees"

Row = Dict[str, Any]

REFERENCE_FIELDS = ("assigned_sales_rep_id", "assigned_designer_id")

# joined view column -> (collection, row column)
NAME_COLUMNS = {
    "customer_name": (CUSTOMERS, "customer_id"),
    "assigned_sales_rep_name": (EMPLOYEES, "assigned_sales_rep_id"),
    "assigned_designer_name": (EMPLOYEES, "assigned_designer_id"),
}


async def lookup_name(store, events: DomainEventDispatcher, collection: str, record_id: Any) -> Optional[str]:
    """full_name of a directory row; None when missing or unreadable."""
    if not record_id:
        return None
    try:
        row = await store.get(collection, record_id)
    except StorageError:
        events.dead_letter.exception(
            "Name lookup failed for %s %s",
            collection,
            record_id,
            extra={"effect": "name_lookup", "context": {"collection": collection}},
        )
        return None
    return row.get("full_name") if row else None


class OrderLifecycleService:
    """
    Applies staff changes to orders under the status rules.

    Every entry point returns Ok(row) or Err(Rejection); storage failures
    (RecordNotFound, StaleRecord, StoreUnavailable) are raised.
    """

    def __init__(self, store, events: DomainEventDispatcher) -> None:
        self.store = store
        self.events = events

    # ============================================================
    # 1) Update an existing order
    # ============================================================
    async def update_order(
        self,
        order_id: Any,
        patch: OrderPatch,
        actor: ActorContext,
    ) -> Result[Row]:
        """
        Validate and apply a patch to one order.

        - Rejections write nothing and notify nobody.
        - Fields equal to the current row are dropped, so repeating a patch
          writes nothing and re-notifies nobody.
        - The write is guarded by the snapshot's version.
        """
        # 1. Snapshot
        snapshot = await self.store.get(ORDERS, order_id)
        if snapshot is None:
            raise RecordNotFound(ORDERS, order_id)

        # 2. Rules
        verdict = validate(snapshot, patch, actor)
        if not verdict.ok:
            logger.info(
                "Order %s update rejected for %s (%s): %s",
                order_id,
                actor.actor_id,
                actor.role,
                verdict.reason.value,
            )
            return verdict

        # 3. Normalize
        changes = patch.changes()
        for name in REFERENCE_FIELDS:
            if name in changes:
                changes[name] = normalize_reference(changes[name])
        if "total_amount" in changes:
            changes["total_amount"] = to_decimal(changes["total_amount"])

        changes = {
            name: value
            for name, value in changes.items()
            if not _same_value(snapshot.get(name), value)
        }
        if not changes:
            return Ok(await self.joined_view(snapshot))

        # 4. Write + 5. Events (flushed after the block)
        async with self.events.collect() as outbox:
            order = await self.store.update(
                ORDERS,
                order_id,
                changes,
                expected_version=snapshot["version"],
            )

            for name in REFERENCE_FIELDS:
                if changes.get(name):
                    outbox.add(OrderAssigned(order=order, assignee_id=changes[name], field=name))

            if "status" in changes:
                outbox.add(
                    OrderStatusChanged(
                        order=order,
                        previous_status=snapshot["status"],
                        new_status=order["status"],
                        metadata={"actor_id": actor.actor_id},
                    )
                )

        # 6. Joined view
        return Ok(await self.joined_view(order))

    # ============================================================
    # 2) Place a new order
    # ============================================================
    async def place_order(
        self,
        customer_id: Any,
        order_type: str,
        order_name: str,
        total_amount: Any,
        actor: ActorContext,
        *,
        custom_description: str = "",
    ) -> Result[Row]:
        customer = await self.store.get(CUSTOMERS, customer_id)
        if customer is None:
            raise RecordNotFound(CUSTOMERS, customer_id)

        if actor.role == Role.CUSTOMER and str(actor.actor_id) != customer["id"]:
            return Err(Rejection.FORBIDDEN)

        amount = parse_amount(total_amount) if total_amount is not None else Decimal("0")
        if amount is None or amount < 0:
            return Err(Rejection.INVALID_AMOUNT)

        if order_type not in Order.OrderType.values:
            return Err(Rejection.INVALID_STATE, f"Unknown order type '{order_type}'.")

        order_number = await agenerate_number("orders.Order")

        async with self.events.collect() as outbox:
            [order] = await self.store.insert(
                ORDERS,
                [
                    {
                        "order_number": order_number,
                        "order_name": order_name,
                        "order_type": order_type,
                        "customer_id": customer["id"],
                        "assigned_sales_rep_id": customer.get("assigned_sales_rep_id"),
                        "status": Order.Status.PENDING,
                        "payment_status": Order.PaymentStatus.UNPAID,
                        "total_amount": amount,
                        "custom_description": custom_description,
                    }
                ],
            )
            outbox.add(OrderPlaced(order=order, customer_name=customer["full_name"]))

        logger.info("Order %s placed by %s", order_number, actor.actor_id)
        return Ok(await self.joined_view(order))

    # ============================================================
    # 3) Joined view
    # ============================================================
    async def joined_view(self, order: Row) -> Row:
        """
        Order row plus display names of the customer and assignees.
        Missing or unreadable names become None.
        """
        view = dict(order)
        for column, (collection, reference) in NAME_COLUMNS.items():
            view[column] = await lookup_name(self.store, self.events, collection, order.get(reference))
        return view


def _same_value(current: Any, new: Any) -> bool:
    if current is None or new is None:
        return current is new
    if isinstance(current, Decimal) or isinstance(new, Decimal):
        try:
            return to_decimal(current) == to_decimal(new)
        except ValueError:
            return False
    return str(current) == str(new)
