# core/errors.py
from __future__ import annotations

from typing import Optional, Union

from core.actors import ActorContext
from core.results import Err, Rejection

GENERIC_FAILURE_MESSAGE = "The operation failed, please retry."


class StorageError(Exception):
    """
    Base class for record store failures.
    Safe to retry the whole operation: workflows write nothing before these.
    """


class UnknownCollection(StorageError):
    def __init__(self, collection: str):
        super().__init__(f"Unknown collection '{collection}'.")
        self.collection = collection


class RecordNotFound(StorageError):
    def __init__(self, collection: str, record_id):
        super().__init__(f"{collection} record {record_id} does not exist.")
        self.collection = collection
        self.record_id = record_id


class StaleRecord(StorageError):
    """The row changed after the caller read it (optimistic version check)."""

    def __init__(self, collection: str, record_id, expected_version: int):
        super().__init__(
            f"{collection} record {record_id} is no longer at version {expected_version}."
        )
        self.collection = collection
        self.record_id = record_id
        self.expected_version = expected_version


class StoreUnavailable(StorageError):
    """Wraps driver-level failures (connection loss, constraint violation...)."""


def user_message(
    failure: Union[Err, Rejection, Exception],
    actor: Optional[ActorContext] = None,
) -> str:
    """
    Text to show the caller for a failed operation.

    - Validation outcomes are specific and actionable.
    - Anything else is generic; admins also get the underlying cause.
    """
    if isinstance(failure, Err):
        return failure.message
    if isinstance(failure, Rejection):
        return failure.message

    if actor is not None and actor.is_admin:
        return f"{GENERIC_FAILURE_MESSAGE} ({failure})"
    return GENERIC_FAILURE_MESSAGE
