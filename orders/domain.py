# orders/domain.py
from dataclasses import dataclass
from typing import Any, Dict

from core.domain.events import DomainEvent

Row = Dict[str, Any]


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """
    Domain event: a customer order was inserted.
    """
    order: Row
    customer_name: str


@dataclass(frozen=True)
class OrderAssigned(DomainEvent):
    """
    Domain event: a designer or sales rep was newly set on an order.
    """
    order: Row
    assignee_id: str
    field: str


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    order: Row
    previous_status: str
    new_status: str


@dataclass(frozen=True)
class EditRequestCreated(DomainEvent):
    """
    Domain event: a completed order was re-opened by an edit request.
    """
    edit_request: Row
    order: Row


@dataclass(frozen=True)
class EditRequestResolved(DomainEvent):
    edit_request: Row
    order: Row
    status: str
