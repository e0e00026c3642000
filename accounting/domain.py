# accounting/domain.py
from dataclasses import dataclass
from typing import Any, Dict

from core.domain.events import DomainEvent

Row = Dict[str, Any]


@dataclass(frozen=True)
class InvoiceCreated(DomainEvent):
    """
    Domain event: an invoice was created.
    """
    invoice: Row


@dataclass(frozen=True)
class InvoiceStatusChanged(DomainEvent):
    """
    Domain event: an invoice moved between unpaid / paid / cancelled.
    """
    invoice: Row
    previous_status: str
    new_status: str
