# core/services/notifications.py

from __future__ import annotations

import logging
from typing import Any, List, NamedTuple, Optional, Sequence

from core.domain.dispatcher import DEAD_LETTER_LOGGER
from core.models import Notification

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
EMPLOYEES = "employees"

Row = dict


class NotificationEntry(NamedTuple):
    recipient_id: str
    type: str
    message: str


def order_label(order: Row) -> str:
    """Human name of an order for messages."""
    return order.get("order_name") or order.get("order_number") or str(order.get("id"))


class NotificationDispatcher:
    """
    Build and persist in-app notifications for one or many recipients.

    Failure policy
    --------------
    Every write path here is best-effort: failures are reported to the
    dead-letter logger and swallowed. Callers never see them, and must not
    rely on ordering or on a batch being all-or-nothing.
    """

    def __init__(self, store, dead_letter: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.dead_letter = dead_letter or logging.getLogger(DEAD_LETTER_LOGGER)

    # ============================================================
    # 1) Primitive writes
    # ============================================================
    async def notify(self, recipient_id: Any, type: str, message: str) -> Optional[Row]:
        """
        Insert a single notification. Returns the row, or None on failure.
        """
        if not recipient_id:
            return None
        try:
            rows = await self.store.insert(
                NOTIFICATIONS,
                [{"recipient_id": recipient_id, "type": type, "message": message}],
            )
        except Exception:
            self.dead_letter.exception(
                "Error creating notification for %s",
                recipient_id,
                extra={"effect": "notify", "context": {"type": type}},
            )
            return None
        return rows[0]

    async def notify_batch(self, entries: Sequence[NotificationEntry]) -> int:
        """
        Insert many notifications; returns how many rows were written.

        - All entries share (type, message) → one broadcast statement
          (e.g. "notify all admins").
        - Otherwise → one multi-row insert.
        """
        entries = [entry for entry in entries if entry.recipient_id]
        if not entries:
            return 0

        first = entries[0]
        same_template = all(
            entry.type == first.type and entry.message == first.message
            for entry in entries
        )

        try:
            if same_template:
                return await self.store.broadcast(
                    NOTIFICATIONS,
                    "recipient_id",
                    [entry.recipient_id for entry in entries],
                    {"type": first.type, "message": first.message},
                )

            rows = await self.store.insert(
                NOTIFICATIONS,
                [
                    {"recipient_id": e.recipient_id, "type": e.type, "message": e.message}
                    for e in entries
                ],
            )
            return len(rows)
        except Exception:
            self.dead_letter.exception(
                "Error creating batch notifications (%d entries)",
                len(entries),
                extra={"effect": "notify_batch", "context": {"broadcast": same_template}},
            )
            return 0

    # ============================================================
    # 2) Directory lookups
    # ============================================================
    async def get_all_admins(self) -> List[Row]:
        try:
            return await self.store.select(EMPLOYEES, {}, scope="admins")
        except Exception:
            self.dead_letter.exception("Error fetching admins")
            return []

    async def _admin_entries(self, type: str, message: str) -> List[NotificationEntry]:
        admins = await self.get_all_admins()
        return [NotificationEntry(admin["id"], type, message) for admin in admins]

    # ============================================================
    # 3) Domain helpers
    # ============================================================
    async def notify_admins_about_new_customer(self, customer_name: str) -> int:
        entries = await self._admin_entries(
            Notification.Type.USER,
            f"New customer {customer_name} has signed up",
        )
        return await self.notify_batch(entries)

    async def notify_admins_about_new_employee(self, employee_name: str, role: str) -> int:
        entries = await self._admin_entries(
            Notification.Type.USER,
            f"New employee {employee_name} has signed up "
            f"({role.replace('_', ' ')}) - pending approval",
        )
        return await self.notify_batch(entries)

    async def notify_about_new_order(self, order: Row, customer_name: str) -> int:
        label = order_label(order)
        order_type = order.get("order_type", "")

        entries = [
            NotificationEntry(
                order["customer_id"],
                Notification.Type.ORDER,
                f"Your {order_type} order {label} has been placed successfully!",
            )
        ]
        entries += await self._admin_entries(
            Notification.Type.ORDER,
            f"New {order_type} order {label} has been placed by {customer_name}",
        )
        if order.get("assigned_sales_rep_id"):
            entries.append(
                NotificationEntry(
                    order["assigned_sales_rep_id"],
                    Notification.Type.ORDER,
                    f"New {order_type} order {label} has been placed by your "
                    f"assigned customer {customer_name}",
                )
            )
        return await self.notify_batch(entries)

    async def notify_about_assignment(self, assignee_id: Any, order: Row) -> Optional[Row]:
        return await self.notify(
            assignee_id,
            Notification.Type.ORDER,
            f"Order {order_label(order)} has been assigned to you.",
        )

    async def notify_about_order_status_change(self, order: Row, new_status: str) -> int:
        """
        - entering review → the sales rep is asked to check the order
        - completed       → the customer is told
        """
        label = order_label(order)
        entries: List[NotificationEntry] = []

        if new_status == "review" and order.get("assigned_sales_rep_id"):
            entries.append(
                NotificationEntry(
                    order["assigned_sales_rep_id"],
                    Notification.Type.ORDER,
                    f"Order {label} is now under review. Please check it.",
                )
            )

        if new_status == "completed":
            entries.append(
                NotificationEntry(
                    order["customer_id"],
                    Notification.Type.ORDER,
                    f"Your order {label} has been completed!",
                )
            )

        if not entries:
            return 0
        return await self.notify_batch(entries)

    async def notify_about_invoice_created(self, invoice: Row) -> int:
        title = invoice.get("invoice_title", "")
        entries = [
            NotificationEntry(
                invoice["customer_id"],
                Notification.Type.INVOICE,
                f'A new invoice "{title}" has been generated for you. '
                f"Please check your invoices section.",
            )
        ]
        entries += await self._admin_entries(
            Notification.Type.INVOICE,
            f'Invoice "{title}" has been generated.',
        )
        return await self.notify_batch(entries)

    async def notify_about_invoice_status_change(self, invoice: Row, new_status: str) -> int:
        title = invoice.get("invoice_title", "")
        if new_status == "paid":
            customer_message = f'Thank you! Your invoice "{title}" has been paid.'
            admin_message = f'Invoice "{title}" has been paid.'
        elif new_status == "cancelled":
            customer_message = f'Your invoice "{title}" has been cancelled.'
            admin_message = f'Invoice "{title}" has been cancelled.'
        else:
            return 0

        entries = [
            NotificationEntry(invoice["customer_id"], Notification.Type.INVOICE, customer_message)
        ]
        entries += await self._admin_entries(Notification.Type.INVOICE, admin_message)
        return await self.notify_batch(entries)

    async def notify_about_edit_request(self, order: Row) -> int:
        """
        Customer (receipt) + all admins + the sales rep for custom orders.
        """
        label = order_label(order)
        entries = [
            NotificationEntry(
                order["customer_id"],
                Notification.Type.ORDER,
                f"Your edit request for order {label} has been received.",
            )
        ]
        entries += await self._admin_entries(
            Notification.Type.ORDER,
            f"New edit request received for order {label}. Please review.",
        )
        if order.get("order_type") == "custom" and order.get("assigned_sales_rep_id"):
            entries.append(
                NotificationEntry(
                    order["assigned_sales_rep_id"],
                    Notification.Type.ORDER,
                    f"Your customer has requested an edit for order {label}. Please review.",
                )
            )
        return await self.notify_batch(entries)

    async def notify_customer_about_edit_request_response(
        self,
        order: Row,
        status: str,
    ) -> Optional[Row]:
        label = order_label(order)
        if status == "approved":
            message = f"Your edit request for order {label} has been approved."
        else:
            message = (
                f"Your edit request for order {label} has been reviewed. "
                f"Please check the designer's response."
            )
        return await self.notify(order["customer_id"], Notification.Type.ORDER, message)

    # ============================================================
    # 4) Reading side (errors propagate)
    # ============================================================
    async def unread_count(self, recipient_id: Any) -> int:
        return await self.store.count_where(
            NOTIFICATIONS,
            {"recipient_id": recipient_id, "read": False},
        )

    async def list_for(self, recipient_id: Any, unread_only: bool = False) -> List[Row]:
        return await self.store.select(
            NOTIFICATIONS,
            {"recipient_id": recipient_id},
            scope="unread" if unread_only else None,
        )

    async def mark_read(self, notification_id: Any) -> Row:
        return await self.store.update(NOTIFICATIONS, notification_id, {"read": True})

    async def mark_all_read(self, recipient_id: Any) -> int:
        unread = await self.list_for(recipient_id, unread_only=True)
        return await self.store.bulk_update_where(
            NOTIFICATIONS,
            "id",
            [row["id"] for row in unread],
            {"read": True},
        )
