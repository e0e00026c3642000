# orders/patches.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from core.patches import UNSET, Patch


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a valid amount.") from None
    if not amount.is_finite():
        raise ValueError(f"'{value}' is not a valid amount.")
    return amount


def parse_amount(value: Any) -> Optional[Decimal]:
    """Finite Decimal for value, or None when it is missing or not a number."""
    try:
        return to_decimal(value)
    except ValueError:
        return None


def coerce_amount(value: Any) -> Any:
    # unparseable amounts are left as-is and rejected as InvalidAmount
    amount = parse_amount(value)
    return value if amount is None else amount


@dataclass(frozen=True)
class OrderPatch(Patch):
    """
    Fields a staff member may change on an order.

    payment_status, revision_count and version are owned by the
    reconciler / edit-request workflow / store and cannot be patched.
    """

    status: Any = UNSET
    assigned_sales_rep_id: Any = UNSET
    assigned_designer_id: Any = UNSET
    total_amount: Any = UNSET
    order_name: Any = UNSET
    custom_description: Any = UNSET
    invoice_url: Any = UNSET

    @classmethod
    def coerce(cls, name: str, value: Any) -> Any:
        if name == "total_amount":
            return coerce_amount(value)
        return value
