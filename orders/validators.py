# orders/validators.py
"""
Order status rules.

Pure functions: they read a snapshot row and a patch, never the store.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, FrozenSet, Mapping

from core.actors import ActorContext, Role
from core.results import OK_NONE, Err, Rejection, Result
from .models import EditRequest, Order
from .patches import OrderPatch, parse_amount, to_decimal

Status = Order.Status

TERMINAL_STATUSES: FrozenSet[str] = frozenset({Status.DELIVERED, Status.CANCELLED})

# completed/cancelled orders may only be touched by these roles
LOCKED_STATUSES: FrozenSet[str] = frozenset({Status.COMPLETED, Status.CANCELLED})
LOCKED_EDITOR_ROLES: FrozenSet[str] = frozenset({Role.ADMIN, Role.SALES_REP})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    Status.PENDING: frozenset({Status.ASSIGNED, Status.IN_PROGRESS}),
    Status.NEW: frozenset({Status.ASSIGNED, Status.IN_PROGRESS}),
    Status.ASSIGNED: frozenset({Status.IN_PROGRESS}),
    Status.IN_PROGRESS: frozenset({Status.REVIEW, Status.COMPLETED}),
    Status.REVIEW: frozenset({Status.IN_PROGRESS, Status.COMPLETED}),
    Status.COMPLETED: frozenset({Status.DELIVERED}),
}

# only EditRequestWorkflow may take these
EDIT_REQUEST_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    Status.COMPLETED: frozenset({Status.NEW}),
}

EDIT_REQUEST_RESOLUTIONS: Dict[str, FrozenSet[str]] = {
    EditRequest.Status.PENDING: frozenset({EditRequest.Status.APPROVED, EditRequest.Status.REJECTED}),
    EditRequest.Status.APPROVED: frozenset({EditRequest.Status.COMPLETED}),
}


def can_transition(current: str, target: str, *, via_edit_request: bool = False) -> bool:
    """
    Is current -> target an allowed move?

    Re-setting the same status is always allowed (no-op).
    """
    if current == target:
        return True
    if target == Status.CANCELLED:
        return current not in TERMINAL_STATUSES
    if via_edit_request and target in EDIT_REQUEST_TRANSITIONS.get(current, ()):
        return True
    return target in TRANSITIONS.get(current, ())


def can_resolve_edit_request(current: str, target: str) -> bool:
    return target in EDIT_REQUEST_RESOLUTIONS.get(current, ())


def normalize_reference(value: Any) -> Any:
    """Empty strings clear a reference column."""
    if value == "":
        return None
    return value


def _effective(snapshot: Mapping[str, Any], patch: OrderPatch, name: str) -> Any:
    if patch.is_set(name):
        return normalize_reference(getattr(patch, name))
    return snapshot.get(name)


def validate(snapshot: Mapping[str, Any], patch: OrderPatch, actor: ActorContext) -> Result[None]:
    """
    Check a patch against the current order row.

    Rules run in a fixed order and the first failure wins:
        1. customer editing an order they do not own                 -> Forbidden
           locked order edited by a role other than admin / sales rep -> Forbidden
        2. negative or non-numeric amount                              -> InvalidAmount
        3. status move that is not an edge                             -> InvalidState
        4. in_progress without a designer                              -> MissingDesigner
        5. completed without a sales rep (non-admin) / without amount  -> MissingSalesRep / InvalidAmount
    """
    current = snapshot["status"]

    # 1. Ownership and locked orders
    if actor.role == Role.CUSTOMER and str(actor.actor_id) != str(snapshot.get("customer_id")):
        return Err(Rejection.FORBIDDEN)
    if current in LOCKED_STATUSES and actor.role not in LOCKED_EDITOR_ROLES:
        return Err(Rejection.FORBIDDEN)

    # 2. Amount
    if patch.is_set("total_amount"):
        amount = parse_amount(patch.total_amount)
        if amount is None or amount < 0:
            return Err(Rejection.INVALID_AMOUNT)

    if not patch.is_set("status"):
        return OK_NONE

    target = patch.status

    # 3. Edge
    if not can_transition(current, target):
        return Err(
            Rejection.INVALID_STATE,
            f"Cannot move an order from '{current}' to '{target}'.",
        )

    # 4. Designer
    if target == Status.IN_PROGRESS and not _effective(snapshot, patch, "assigned_designer_id"):
        return Err(Rejection.MISSING_DESIGNER)

    # 5. Completion
    if target == Status.COMPLETED:
        if not _effective(snapshot, patch, "assigned_sales_rep_id") and not actor.is_admin:
            return Err(Rejection.MISSING_SALES_REP)

        total = to_decimal(_effective(snapshot, patch, "total_amount")) or Decimal("0")
        if total <= 0:
            return Err(Rejection.INVALID_AMOUNT)

    return OK_NONE
