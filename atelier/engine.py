# atelier/engine.py
"""
Composition root: one isolated set of workflow services.

    engine = WorkflowEngine().open()
    result = await engine.orders.update_order(order_id, OrderPatch(status="review"), actor)
    ...
    engine.close_all()

Tests build their own engine (optionally with a custom store / dead-letter
logger); the HTTP views share the process-wide one from get_engine().
"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings

from accounting.handlers import register_handlers as register_accounting_handlers
from accounting.services import InvoiceReconciler
from core.domain.dispatcher import DomainEventDispatcher
from core.realtime import RealtimeSubscriptionManager
from core.services.notifications import NotificationDispatcher
from core.store import DjangoRecordStore
from orders.edit_requests import EditRequestWorkflow
from orders.handlers import register_handlers as register_order_handlers
from orders.services import OrderLifecycleService

logger = logging.getLogger(__name__)


class WorkflowEngine:
    def __init__(self, store=None, dead_letter: Optional[logging.Logger] = None) -> None:
        self.store = store or DjangoRecordStore()
        self.dead_letter = dead_letter or logging.getLogger(settings.ATELIER["DEAD_LETTER_LOGGER"])

        self.events = DomainEventDispatcher(dead_letter=self.dead_letter)
        self.notifications = NotificationDispatcher(self.store, dead_letter=self.dead_letter)
        self.subscriptions = RealtimeSubscriptionManager(self.store)

        self.orders = OrderLifecycleService(self.store, self.events)
        self.edit_requests = EditRequestWorkflow(self.store, self.events)
        self.invoices = InvoiceReconciler(self.store, self.events)

        register_order_handlers(self.events, self.notifications)
        register_accounting_handlers(self.events, self.notifications)

    def open(self) -> "WorkflowEngine":
        self.subscriptions.open()
        logger.debug("Workflow engine opened")
        return self

    @property
    def is_open(self) -> bool:
        return self.subscriptions.is_open

    def close_all(self) -> None:
        """Tear down every live subscription (sign-out / shutdown)."""
        self.subscriptions.close_all()
        logger.debug("Workflow engine closed")


_engine: Optional[WorkflowEngine] = None


def get_engine() -> WorkflowEngine:
    """Engine used by the JSON views, built on first use."""
    global _engine
    if _engine is None:
        _engine = WorkflowEngine().open()
    return _engine
