# core/domain/events.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from django.utils import timezone


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Base class for all domain events.

    - Inherit from this class for concrete domain events.
    - Example:
        @dataclass(frozen=True, kw_only=True)
        class InvoicePaid(DomainEvent):
            invoice_id: str
            customer_id: str
    """
    occurred_at: datetime = field(default_factory=timezone.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
