# core/realtime.py
"""
Live change feed for record collections.

Two sources feed `record_changed`:
  - the record store, for every insert / update it performs;
  - post_save / post_delete receivers, for writes made through Model.save()
    or queryset deletes (admin, shell, fixtures).

RealtimeSubscriptionManager keeps a registry of named channels on top of it.
There is no queue or replay: a view that was not subscribed while a change
landed must re-fetch.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from django.db.models.signals import post_delete, post_save
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Sent with keyword argument `event` (a ChangeEvent)
record_changed = Signal()

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
ALL_EVENTS = "*"

EVENT_KINDS = (INSERT, UPDATE, DELETE)


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    kind: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

    @property
    def row(self) -> Optional[Dict[str, Any]]:
        """The row the change is about: the new image, or the old one for deletes."""
        return self.old if self.kind == DELETE else self.new


@dataclass(frozen=True)
class ChangeFilter:
    """
    Which events on a collection a subscriber wants.

    - event: "insert" / "update" / "delete" or "*"
    - row_filter: equality match on row fields (e.g. {"recipient_id": user_id})
    """
    event: str = ALL_EVENTS
    row_filter: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.event != ALL_EVENTS and self.event not in EVENT_KINDS:
            raise ValueError(f"Unknown change event '{self.event}'.")

    def matches(self, event: ChangeEvent) -> bool:
        if self.event != ALL_EVENTS and event.kind != self.event:
            return False
        if not self.row_filter:
            return True
        row = event.row or {}
        for key, expected in self.row_filter.items():
            if key not in row or str(row[key]) != str(expected):
                return False
        return True


def publish_change(collection: str, kind: str, new=None, old=None) -> None:
    """
    Broadcast one change to every live listener.
    Listener failures are logged and never reach the writer.
    """
    event = ChangeEvent(collection=collection, kind=kind, new=new, old=old)
    responses = record_changed.send_robust(sender=ChangeEvent, event=event)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                "Change listener %r failed for %s %s: %s",
                receiver,
                kind,
                collection,
                response,
            )


class ChangeSubscription:
    """
    Handle returned by subscribe_changes(); close() detaches the listener.
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        collection: str,
        change_filter: ChangeFilter,
        on_event: Callable[[ChangeEvent], None],
    ) -> None:
        self.collection = collection
        self.change_filter = change_filter
        self.on_event = on_event
        self.dispatch_uid = f"change-subscription-{next(self._ids)}"
        self.closed = False
        record_changed.connect(self._receive, weak=False, dispatch_uid=self.dispatch_uid)

    def _receive(self, sender, event: ChangeEvent, **kwargs) -> None:
        if self.closed or event.collection != self.collection:
            return
        if self.change_filter.matches(event):
            self.on_event(event)

    def close(self) -> None:
        if self.closed:
            return
        record_changed.disconnect(dispatch_uid=self.dispatch_uid)
        self.closed = True


# ============================================================
# Model signal bridge
# ============================================================

def connect_model_signals(models_by_collection: Mapping[str, Any], to_row: Callable) -> None:
    """
    Forward post_save / post_delete for every store collection to record_changed.
    Called once from CoreConfig.ready().
    """
    for collection, model in models_by_collection.items():

        def on_saved(sender, instance, created, _collection=collection, **kwargs):
            publish_change(_collection, INSERT if created else UPDATE, new=to_row(instance))

        def on_deleted(sender, instance, _collection=collection, **kwargs):
            publish_change(_collection, DELETE, old=to_row(instance))

        post_save.connect(
            on_saved,
            sender=model,
            weak=False,
            dispatch_uid=f"realtime-save-{collection}",
        )
        post_delete.connect(
            on_deleted,
            sender=model,
            weak=False,
            dispatch_uid=f"realtime-delete-{collection}",
        )


# ============================================================
# Subscription registry
# ============================================================

Callback = Callable[[ChangeEvent], None]


@dataclass(frozen=True)
class SubscriptionSpec:
    collection: str
    event: str = ALL_EVENTS
    row_filter: Mapping[str, Any] = field(default_factory=dict)
    on_insert: Optional[Callback] = None
    on_update: Optional[Callback] = None
    on_delete: Optional[Callback] = None
    on_change: Optional[Callback] = None


class Channel:
    """
    One live subscription: a collection, an event/row filter and its callbacks.
    """

    def __init__(self, channel_id: str, spec: SubscriptionSpec) -> None:
        self.id = channel_id
        self.spec = spec
        self._handle: Optional[ChangeSubscription] = None

    @property
    def is_joined(self) -> bool:
        return self._handle is not None and not self._handle.closed

    def join(self, store) -> None:
        self._handle = store.subscribe_changes(
            self.spec.collection,
            ChangeFilter(event=self.spec.event, row_filter=dict(self.spec.row_filter)),
            self.deliver,
        )
        logger.info("Subscribed to %s changes (channel %s)", self.spec.collection, self.id)

    def deliver(self, event: ChangeEvent) -> None:
        """Catch-all callback first, then the one typed for the event kind."""
        typed = {
            INSERT: self.spec.on_insert,
            UPDATE: self.spec.on_update,
            DELETE: self.spec.on_delete,
        }.get(event.kind)

        for callback in (self.spec.on_change, typed):
            if callback is None:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Realtime callback failed on channel %s (%s %s)",
                    self.id,
                    event.kind,
                    event.collection,
                )

    def leave(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class RealtimeSubscriptionManager:
    """
    Deduplicated registry of live channels, keyed by a caller-chosen id.

    - subscribe(id, spec) is idempotent: the same id returns the same channel.
    - unsubscribe(id) tears one channel down; unsubscribe_all() (sign-out) all of them.
    - open() / close_all() bracket the manager's lifetime.
    """

    def __init__(self, store) -> None:
        self.store = store
        self._channels: Dict[str, Channel] = {}
        self._open = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self) -> "RealtimeSubscriptionManager":
        self._open = True
        return self

    @property
    def is_open(self) -> bool:
        return self._open

    def close_all(self) -> None:
        self.unsubscribe_all()
        self._open = False

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def subscribe(self, channel_id: str, spec: SubscriptionSpec) -> Channel:
        if not self._open:
            raise RuntimeError("RealtimeSubscriptionManager is closed; call open() first.")

        existing = self._channels.get(channel_id)
        if existing is not None:
            return existing

        channel = Channel(channel_id, spec)
        channel.join(self.store)
        self._channels[channel_id] = channel
        return channel

    def unsubscribe(self, channel_id: str) -> None:
        channel = self._channels.pop(channel_id, None)
        if channel is not None:
            channel.leave()
            logger.info("Unsubscribed from channel: %s", channel_id)

    def unsubscribe_all(self) -> None:
        for channel_id in list(self._channels):
            self.unsubscribe(channel_id)

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        return self._channels.get(channel_id)

    def is_subscribed(self, channel_id: str) -> bool:
        return channel_id in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    # ------------------------------------------------------------------
    # Dashboard helpers
    # ------------------------------------------------------------------
    def subscribe_to_orders(
        self,
        user_id: str,
        *,
        on_insert: Optional[Callable[[dict], None]] = None,
        on_update: Optional[Callable[[dict], None]] = None,
        on_delete: Optional[Callable[[dict], None]] = None,
    ) -> Channel:
        return self.subscribe(
            f"orders-{user_id}",
            SubscriptionSpec(
                collection="orders",
                on_insert=_unwrap(on_insert),
                on_update=_unwrap(on_update),
                on_delete=_unwrap(on_delete),
            ),
        )

    def subscribe_to_notifications(
        self,
        user_id: str,
        *,
        on_insert: Optional[Callable[[dict], None]] = None,
        on_update: Optional[Callable[[dict], None]] = None,
    ) -> Channel:
        return self.subscribe(
            f"notifications-{user_id}",
            SubscriptionSpec(
                collection="notifications",
                row_filter={"recipient_id": user_id},
                on_insert=_unwrap(on_insert),
                on_update=_unwrap(on_update),
            ),
        )

    def subscribe_to_edit_comments(
        self,
        order_id: str,
        *,
        on_insert: Optional[Callable[[dict], None]] = None,
        on_update: Optional[Callable[[dict], None]] = None,
        on_delete: Optional[Callable[[dict], None]] = None,
    ) -> Channel:
        return self.subscribe(
            f"edit-comments-{order_id}",
            SubscriptionSpec(
                collection="edit_comments",
                row_filter={"order_id": order_id},
                on_insert=_unwrap(on_insert),
                on_update=_unwrap(on_update),
                on_delete=_unwrap(on_delete),
            ),
        )

    def subscribe_to_customers(
        self,
        *,
        on_insert: Optional[Callable[[dict], None]] = None,
        on_update: Optional[Callable[[dict], None]] = None,
        on_delete: Optional[Callable[[dict], None]] = None,
    ) -> Channel:
        """Admin customer list; one shared channel."""
        return self.subscribe(
            "customers-all",
            SubscriptionSpec(
                collection="customers",
                on_insert=_unwrap(on_insert),
                on_update=_unwrap(on_update),
                on_delete=_unwrap(on_delete),
            ),
        )


def _unwrap(callback: Optional[Callable[[dict], None]]) -> Optional[Callback]:
    """Adapt a row callback to an event callback."""
    if callback is None:
        return None

    def handler(event: ChangeEvent) -> None:
        callback(event.row)

    return handler
