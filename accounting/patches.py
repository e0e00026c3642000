# accounting/patches.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.patches import UNSET, Patch
from orders.patches import coerce_amount


@dataclass(frozen=True)
class InvoicePatch(Patch):
    """
    Fields an admin may change on an invoice.
    order_ids replaces the whole list.
    """

    status: Any = UNSET
    order_ids: Any = UNSET
    total_amount: Any = UNSET
    invoice_title: Any = UNSET
    month_year: Any = UNSET
    payment_link: Any = UNSET

    @classmethod
    def coerce(cls, name: str, value: Any) -> Any:
        if name == "total_amount":
            return coerce_amount(value)
        if name == "order_ids":
            if not isinstance(value, (list, tuple)):
                raise ValueError("order_ids must be a list.")
            return tuple(value)
        return value
