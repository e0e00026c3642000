# orders/edit_requests.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.utils import timezone

from core.actors import ActorContext, Role
from core.domain.dispatcher import DomainEventDispatcher
from core.errors import RecordNotFound, StaleRecord
from core.results import Err, Ok, Rejection, Result
from .domain import EditRequestCreated, EditRequestResolved
from .models import EditRequest, Order
from .services import CUSTOMERS, EMPLOYEES, lookup_name
from .validators import can_resolve_edit_request

logger = logging.getLogger(__name__)

ORDERS = "orders"
EDIT_REQUESTS = "edit_requests"
EDIT_COMMENTS = "edit_comments"

Row = Dict[str, Any]

CLOSED_REQUEST_STATUSES = frozenset({EditRequest.Status.COMPLETED, EditRequest.Status.REJECTED})


def _owns(actor: ActorContext, row: Row) -> bool:
    return str(actor.actor_id) == str(row.get("customer_id"))


class EditRequestWorkflow:
    """
    Re-opens completed orders on customer request and tracks the
    request until staff resolve it.
    """

    def __init__(self, store, events: DomainEventDispatcher) -> None:
        self.store = store
        self.events = events

    # ============================================================
    # 1) Create
    # ============================================================
    async def create_edit_request(
        self,
        order_id: Any,
        description: str,
        actor: ActorContext,
    ) -> Result[Row]:
        """
        Steps:
            1. order must be completed (and owned, for customers)
            2. insert the request as pending
            3. order -> new, revision_count + 1 (version-guarded)
            4. first comment = description (best-effort)
            5. notifications, through EditRequestCreated
        """
        # 1. Checks
        order = await self.store.get(ORDERS, order_id)
        if order is None:
            raise RecordNotFound(ORDERS, order_id)

        if order["status"] != Order.Status.COMPLETED:
            return Err(Rejection.INVALID_STATE, "Only completed orders can be edited.")

        if actor.role == Role.CUSTOMER and not _owns(actor, order):
            return Err(Rejection.FORBIDDEN)

        async with self.events.collect() as outbox:
            # 2. Request row
            [edit_request] = await self.store.insert(
                EDIT_REQUESTS,
                [
                    {
                        "order_id": order["id"],
                        "customer_id": order["customer_id"],
                        "description": description,
                        "status": EditRequest.Status.PENDING,
                    }
                ],
            )

            # 3. Re-open the order
            try:
                reopened = await self.store.update(
                    ORDERS,
                    order["id"],
                    {
                        "status": Order.Status.NEW,
                        "revision_count": order["revision_count"] + 1,
                    },
                    expected_version=order["version"],
                )
            except StaleRecord:
                # the order moved under us; drop the request so a retry starts clean
                await self.store.delete(EDIT_REQUESTS, edit_request["id"])
                raise

            # 4. Audit comment
            await self.events.run_effect(
                "edit_request_comment",
                self._insert_comment,
                edit_request,
                actor.actor_id,
                description,
                edit_request_id=edit_request["id"],
            )

            # 5. Notifications
            outbox.add(EditRequestCreated(edit_request=edit_request, order=reopened))

        logger.info(
            "Edit request %s opened on order %s (revision %s)",
            edit_request["id"],
            order["id"],
            reopened["revision_count"],
        )
        return Ok(edit_request)

    # ============================================================
    # 2) Resolve
    # ============================================================
    async def resolve_edit_request(
        self,
        edit_request_id: Any,
        status: str,
        actor: ActorContext,
        designer_notes: Optional[str] = None,
    ) -> Result[Row]:
        """
        pending -> approved | rejected, approved -> completed.
        Staff only. Stamps resolved_by / resolved_at.
        """
        edit_request = await self.store.get(EDIT_REQUESTS, edit_request_id)
        if edit_request is None:
            raise RecordNotFound(EDIT_REQUESTS, edit_request_id)

        if not actor.is_staff:
            return Err(Rejection.FORBIDDEN)

        if not can_resolve_edit_request(edit_request["status"], status):
            return Err(
                Rejection.INVALID_STATE,
                f"Cannot move an edit request from '{edit_request['status']}' to '{status}'.",
            )

        changes: Row = {
            "status": status,
            "resolved_by_id": actor.actor_id,
            "resolved_at": timezone.now(),
        }
        if designer_notes is not None:
            changes["designer_notes"] = designer_notes

        async with self.events.collect() as outbox:
            resolved = await self.store.update(EDIT_REQUESTS, edit_request_id, changes)
            order = await self.store.get(ORDERS, resolved["order_id"])
            if order is not None:
                outbox.add(EditRequestResolved(edit_request=resolved, order=order, status=status))

        return Ok(resolved)

    # ============================================================
    # 3) Conversation
    # ============================================================
    async def add_comment(
        self,
        edit_request_id: Any,
        content: str,
        actor: ActorContext,
    ) -> Result[Row]:
        edit_request = await self.store.get(EDIT_REQUESTS, edit_request_id)
        if edit_request is None:
            raise RecordNotFound(EDIT_REQUESTS, edit_request_id)

        if actor.role == Role.CUSTOMER and not _owns(actor, edit_request):
            return Err(Rejection.FORBIDDEN)

        if edit_request["status"] in CLOSED_REQUEST_STATUSES:
            return Err(Rejection.INVALID_STATE, "This edit request is closed.")

        return Ok(await self._insert_comment(edit_request, actor.actor_id, content))

    async def _insert_comment(self, edit_request: Row, author_id: Any, content: str) -> Row:
        [comment] = await self.store.insert(
            EDIT_COMMENTS,
            [
                {
                    "edit_request_id": edit_request["id"],
                    "order_id": edit_request["order_id"],
                    "author_id": author_id,
                    "content": content,
                }
            ],
        )
        return comment

    # ============================================================
    # 4) Reading side (errors propagate)
    # ============================================================
    async def list_for_order(self, order_id: Any, actor: ActorContext) -> Result[List[Row]]:
        """Requests on one order, newest first."""
        order = await self.store.get(ORDERS, order_id)
        if order is None:
            raise RecordNotFound(ORDERS, order_id)
        if actor.role == Role.CUSTOMER and not _owns(actor, order):
            return Err(Rejection.FORBIDDEN)
        return Ok(await self.store.select(EDIT_REQUESTS, {"order_id": order["id"]}))

    async def list_for_customer(self, customer_id: Any, actor: ActorContext) -> Result[List[Row]]:
        if actor.role == Role.CUSTOMER and str(actor.actor_id) != str(customer_id):
            return Err(Rejection.FORBIDDEN)
        return Ok(await self.store.select(EDIT_REQUESTS, {"customer_id": customer_id}))

    async def list_pending(self, actor: ActorContext) -> Result[List[Row]]:
        """Staff work queue."""
        if not actor.is_staff:
            return Err(Rejection.FORBIDDEN)
        return Ok(await self.store.select(EDIT_REQUESTS, {}, scope="pending"))

    async def comments_for(
        self,
        actor: ActorContext,
        *,
        edit_request_id: Any = None,
        order_id: Any = None,
    ) -> Result[List[Row]]:
        """
        Comments of one edit request, or of every request on an order,
        oldest first. Each row gains author_name (customer or employee).
        """
        if (edit_request_id is None) == (order_id is None):
            raise ValueError("Pass exactly one of edit_request_id or order_id.")

        if edit_request_id is not None:
            parent = await self.store.get(EDIT_REQUESTS, edit_request_id)
            if parent is None:
                raise RecordNotFound(EDIT_REQUESTS, edit_request_id)
            filters = {"edit_request_id": parent["id"]}
        else:
            parent = await self.store.get(ORDERS, order_id)
            if parent is None:
                raise RecordNotFound(ORDERS, order_id)
            filters = {"order_id": parent["id"]}

        if actor.role == Role.CUSTOMER and not _owns(actor, parent):
            return Err(Rejection.FORBIDDEN)

        comments = await self.store.select(EDIT_COMMENTS, filters)
        names: Dict[Any, Optional[str]] = {}
        for comment in comments:
            author_id = comment["author_id"]
            if author_id not in names:
                names[author_id] = await self._author_name(author_id)
            comment["author_name"] = names[author_id]
        return Ok(comments)

    async def _author_name(self, author_id: Any) -> Optional[str]:
        for collection in (CUSTOMERS, EMPLOYEES):
            name = await lookup_name(self.store, self.events, collection, author_id)
            if name is not None:
                return name
        return None
