# core/results.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class Rejection(str, Enum):
    """
    Validation outcomes that stop a workflow before any write.
    Values are the wire names shown to callers.
    """

    MISSING_DESIGNER = "MissingDesigner"
    MISSING_SALES_REP = "MissingSalesRep"
    INVALID_AMOUNT = "InvalidAmount"
    FORBIDDEN = "Forbidden"
    INVALID_STATE = "InvalidState"
    CUSTOMER_MISMATCH = "CustomerMismatch"

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self]


REJECTION_MESSAGES = {
    Rejection.MISSING_DESIGNER: "Assign a designer before starting work on this order.",
    Rejection.MISSING_SALES_REP: "Assign a sales representative before completing this order.",
    Rejection.INVALID_AMOUNT: "The order amount is not valid for this change.",
    Rejection.FORBIDDEN: "You are not allowed to change this record in its current state.",
    Rejection.INVALID_STATE: "This change is not allowed from the record's current status.",
    Rejection.CUSTOMER_MISMATCH: "All orders on an invoice must belong to the invoice's customer.",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: Rejection
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.detail or self.reason.message


Result = Union[Ok[T], Err]

OK_NONE: Ok[None] = Ok(None)
