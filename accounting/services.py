# accounting/services.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from core.actors import ActorContext
from core.domain.dispatcher import DomainEventDispatcher
from core.errors import RecordNotFound
from core.results import Err, Ok, Rejection, Result
from orders.models import Order
from orders.patches import parse_amount, to_decimal
from .domain import InvoiceCreated, InvoiceStatusChanged
from .models import Invoice
from .patches import InvoicePatch

logger = logging.getLogger(__name__)

INVOICES = "invoices"
ORDERS = "orders"
CUSTOMERS = "customers"

Row = Dict[str, Any]

PAID = Invoice.Status.PAID


def normalize_order_ids(order_ids: Iterable[Any]) -> Optional[List[str]]:
    """
    Canonical str ids, de-duplicated, original order kept.
    Returns None if any id is not a UUID.
    """
    result: List[str] = []
    for order_id in order_ids:
        try:
            canonical = str(uuid.UUID(str(order_id)))
        except ValueError:
            return None
        if canonical not in result:
            result.append(canonical)
    return result


class InvoiceReconciler:
    """
    Keeps Order.payment_status in line with the invoices covering each order.

    Not transactional across invoices and orders: each sweep is one bulk
    update and bumps the orders' version, so an update_order computed from
    an older snapshot fails with StaleRecord instead of overwriting the sweep.
    """

    def __init__(self, store, events: DomainEventDispatcher) -> None:
        self.store = store
        self.events = events

    # ============================================================
    # 1) Validation
    # ============================================================
    async def _check(
        self,
        customer_id: str,
        order_ids: Optional[Iterable[Any]],
        total_amount: Any,
        status: Any = None,
        actor: Optional[ActorContext] = None,
    ) -> Result[Optional[List[str]]]:
        if actor is not None and not actor.is_admin:
            return Err(Rejection.FORBIDDEN)

        if total_amount is not None:
            amount = parse_amount(total_amount)
            if amount is None or amount < 0:
                return Err(Rejection.INVALID_AMOUNT)

        if status is not None and status not in Invoice.Status.values:
            return Err(Rejection.INVALID_STATE, f"Unknown invoice status '{status}'.")

        if order_ids is None:
            return Ok(None)

        ids = normalize_order_ids(order_ids)
        if ids is None:
            return Err(Rejection.CUSTOMER_MISMATCH)

        if ids:
            orders = await self.store.select(ORDERS, {"id__in": ids})
            owned = {row["id"] for row in orders if row["customer_id"] == customer_id}
            if len(owned) != len(ids):
                return Err(Rejection.CUSTOMER_MISMATCH)

        return Ok(ids)

    # ============================================================
    # 2) Sweeps
    # ============================================================
    async def _set_payment_status(self, order_ids: Iterable[str], payment_status: str) -> int:
        order_ids = list(order_ids)
        if not order_ids:
            return 0
        updated = await self.store.bulk_update_where(
            ORDERS,
            "id",
            order_ids,
            {"payment_status": payment_status},
        )
        logger.debug("Set payment_status=%s on %d order(s)", payment_status, updated)
        return updated

    # ============================================================
    # 3) Update
    # ============================================================
    async def update_invoice(
        self,
        invoice_id: Any,
        patch: InvoicePatch,
        actor: Optional[ActorContext] = None,
    ) -> Result[Row]:
        """
        Apply an invoice patch and reconcile its orders.

        1. order_ids replaced: old orders -> unpaid, new orders -> paid if the
           invoice ends up paid, else unpaid.
        2. otherwise, status entering paid -> orders paid; leaving paid -> unpaid.
        3. invoice row update.
        4. paid / cancelled -> customer and admins are notified.
        """
        invoice = await self.store.get(INVOICES, invoice_id)
        if invoice is None:
            raise RecordNotFound(INVOICES, invoice_id)

        verdict = await self._check(
            invoice["customer_id"],
            patch.order_ids if patch.is_set("order_ids") else None,
            patch.total_amount if patch.is_set("total_amount") else None,
            patch.status if patch.is_set("status") else None,
            actor,
        )
        if not verdict.ok:
            logger.info("Invoice %s update rejected: %s", invoice_id, verdict.reason.value)
            return verdict

        changes = patch.changes()
        previous_status = invoice["status"]
        status = changes.get("status", previous_status)
        previous_ids = invoice.get("order_ids") or []

        async with self.events.collect() as outbox:
            # 1./2. Reconcile orders
            if verdict.value is not None:
                new_ids = verdict.value
                changes["order_ids"] = new_ids
                await self._set_payment_status(previous_ids, Order.PaymentStatus.UNPAID)
                await self._set_payment_status(
                    new_ids,
                    Order.PaymentStatus.PAID if status == PAID else Order.PaymentStatus.UNPAID,
                )
            elif status != previous_status:
                if status == PAID:
                    await self._set_payment_status(previous_ids, Order.PaymentStatus.PAID)
                elif previous_status == PAID:
                    await self._set_payment_status(previous_ids, Order.PaymentStatus.UNPAID)

            # 3. Invoice row
            updated = await self.store.update(INVOICES, invoice_id, changes)

            # 4. Notifications
            if status != previous_status:
                outbox.add(
                    InvoiceStatusChanged(
                        invoice=updated,
                        previous_status=previous_status,
                        new_status=status,
                    )
                )

        return Ok(updated)

    # ============================================================
    # 4) Create
    # ============================================================
    async def create_invoice(
        self,
        customer_id: Any,
        invoice_title: str,
        month_year: str,
        order_ids: Iterable[Any],
        total_amount: Any,
        payment_link: Optional[str] = None,
        actor: Optional[ActorContext] = None,
    ) -> Result[Row]:
        customer = await self.store.get(CUSTOMERS, customer_id)
        if customer is None:
            raise RecordNotFound(CUSTOMERS, customer_id)

        verdict = await self._check(customer["id"], list(order_ids), total_amount, actor=actor)
        if not verdict.ok:
            return verdict

        async with self.events.collect() as outbox:
            [invoice] = await self.store.insert(
                INVOICES,
                [
                    {
                        "customer_id": customer["id"],
                        "invoice_title": invoice_title,
                        "month_year": month_year,
                        "payment_link": payment_link,
                        "order_ids": verdict.value,
                        "total_amount": to_decimal(total_amount) or Decimal("0"),
                        "status": Invoice.Status.UNPAID,
                    }
                ],
            )
            await self._set_payment_status(verdict.value, Order.PaymentStatus.UNPAID)
            outbox.add(InvoiceCreated(invoice=invoice))

        logger.info("Invoice %s created for customer %s", invoice["id"], customer["id"])
        return Ok(invoice)
