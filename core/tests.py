# core/tests.py
from dataclasses import dataclass

from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from contacts.models import Customer, Employee
from core.actors import ActorContext, Role, actor_from_request
from core.domain.dispatcher import DomainEventDispatcher
from core.domain.events import DomainEvent
from core.errors import (
    GENERIC_FAILURE_MESSAGE,
    RecordNotFound,
    StaleRecord,
    StoreUnavailable,
    UnknownCollection,
    user_message,
)
from core.models import Notification, NumberSequence
from core.patches import UNSET
from core.realtime import (
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    ChangeFilter,
    RealtimeSubscriptionManager,
    SubscriptionSpec,
)
from core.results import Err, Ok, Rejection
from core.services.notifications import NotificationDispatcher, NotificationEntry
from core.services.numbering import generate_number
from core.store import DjangoRecordStore
from orders.models import Order
from orders.patches import OrderPatch

DEAD_LETTER = "atelier.deadletter"


@dataclass(frozen=True)
class SomethingHappened(DomainEvent):
    name: str


class FailingStore:
    """Store double whose writes always fail."""

    async def insert(self, collection, rows):
        raise StoreUnavailable("database is locked")

    async def broadcast(self, collection, field, values, row):
        raise StoreUnavailable("database is locked")

    async def select(self, collection, filters, scope=None):
        raise StoreUnavailable("database is locked")


def make_people():
    admin = Employee.objects.create(full_name="Amal Admin", email="amal@example.com", role="admin")
    second_admin = Employee.objects.create(full_name="Badr Admin", email="badr@example.com", role="admin")
    Employee.objects.create(
        full_name="Old Admin",
        email="old@example.com",
        role="admin",
        status="disabled",
    )
    rep = Employee.objects.create(full_name="Salim Rep", email="salim@example.com", role="sales_rep")
    customer = Customer.objects.create(
        full_name="Huda Customer",
        email="huda@example.com",
        assigned_sales_rep=rep,
    )
    return admin, second_admin, rep, customer


# ===================================================================
# Results / errors / patches
# ===================================================================

class ResultTests(SimpleTestCase):
    def test_ok_and_err_are_tagged(self):
        self.assertTrue(Ok(1).ok)
        self.assertFalse(Err(Rejection.FORBIDDEN).ok)

    def test_err_message_prefers_detail(self):
        self.assertEqual(Err(Rejection.INVALID_STATE, "nope").message, "nope")
        self.assertEqual(
            Err(Rejection.MISSING_DESIGNER).message,
            Rejection.MISSING_DESIGNER.message,
        )

    def test_rejection_values_are_wire_names(self):
        self.assertEqual(Rejection.MISSING_SALES_REP.value, "MissingSalesRep")


class UserMessageTests(SimpleTestCase):
    def test_validation_message_is_specific(self):
        self.assertEqual(
            user_message(Err(Rejection.INVALID_AMOUNT)),
            Rejection.INVALID_AMOUNT.message,
        )

    def test_storage_detail_hidden_from_non_admins(self):
        failure = StoreUnavailable("disk I/O error")
        customer = ActorContext("c1", Role.CUSTOMER)
        self.assertEqual(user_message(failure, customer), GENERIC_FAILURE_MESSAGE)
        self.assertEqual(user_message(failure), GENERIC_FAILURE_MESSAGE)

    def test_storage_detail_shown_to_admins(self):
        failure = StoreUnavailable("disk I/O error")
        admin = ActorContext("a1", Role.ADMIN)
        self.assertIn("disk I/O error", user_message(failure, admin))


class PatchTests(SimpleTestCase):
    def test_changes_skip_unset_fields(self):
        patch = OrderPatch(status="review", assigned_designer_id=None)
        self.assertEqual(patch.changes(), {"status": "review", "assigned_designer_id": None})
        self.assertIs(patch.order_name, UNSET)
        self.assertFalse(patch.is_set("order_name"))

    def test_from_payload_rejects_unknown_fields(self):
        with self.assertRaises(TypeError):
            OrderPatch.from_payload({"payment_status": "paid"})

    def test_from_payload_coerces_amount(self):
        patch = OrderPatch.from_payload({"total_amount": "12.50"})
        self.assertEqual(str(patch.total_amount), "12.50")


class ActorFromRequestTests(SimpleTestCase):
    def test_reads_actor_headers(self):
        request = type("Request", (), {"META": {"HTTP_X_ACTOR_ID": "u1", "HTTP_X_ACTOR_ROLE": "designer"}})
        actor = actor_from_request(request)
        self.assertEqual(actor, ActorContext("u1", Role.DESIGNER))
        self.assertTrue(actor.is_staff)
        self.assertFalse(actor.is_admin)

    def test_unknown_role_is_anonymous(self):
        request = type("Request", (), {"META": {"HTTP_X_ACTOR_ID": "u1", "HTTP_X_ACTOR_ROLE": "root"}})
        self.assertIsNone(actor_from_request(request))


# ===================================================================
# Domain events
# ===================================================================

class DomainEventDispatcherTests(SimpleTestCase):
    def setUp(self):
        self.dispatcher = DomainEventDispatcher()
        self.seen = []

    async def test_handlers_run_in_registration_order(self):
        @self.dispatcher.register_handler(SomethingHappened)
        def first(event):
            self.seen.append(("first", event.name))

        @self.dispatcher.register_handler(SomethingHappened)
        async def second(event):
            self.seen.append(("second", event.name))

        await self.dispatcher.emit(SomethingHappened(name="x"))
        self.assertEqual(self.seen, [("first", "x"), ("second", "x")])

    async def test_failing_handler_is_dead_lettered(self):
        @self.dispatcher.register_handler(SomethingHappened)
        def broken(event):
            raise RuntimeError("boom")

        @self.dispatcher.register_handler(SomethingHappened)
        def fine(event):
            self.seen.append(event.name)

        with self.assertLogs(DEAD_LETTER, level="ERROR") as logs:
            await self.dispatcher.emit(SomethingHappened(name="y"))

        self.assertEqual(self.seen, ["y"])
        self.assertIn("broken", logs.output[0])

    async def test_collect_emits_after_clean_exit(self):
        self.dispatcher.subscribe(SomethingHappened, lambda event: self.seen.append(event.name))

        async with self.dispatcher.collect() as outbox:
            outbox.add(SomethingHappened(name="queued"))
            self.assertEqual(self.seen, [])

        self.assertEqual(self.seen, ["queued"])

    async def test_collect_discards_events_when_block_raises(self):
        self.dispatcher.subscribe(SomethingHappened, lambda event: self.seen.append(event.name))

        with self.assertRaises(ValueError):
            async with self.dispatcher.collect() as outbox:
                outbox.add(SomethingHappened(name="lost"))
                raise ValueError("write failed")

        self.assertEqual(self.seen, [])

    async def test_run_effect_reports_failure(self):
        def explode():
            raise RuntimeError("nope")

        with self.assertLogs(DEAD_LETTER, level="ERROR"):
            ok = await self.dispatcher.run_effect("explode", explode)
        self.assertFalse(ok)

    def test_dispatchers_are_isolated(self):
        other = DomainEventDispatcher()
        self.dispatcher.subscribe(SomethingHappened, print)
        self.assertEqual(other.handlers_for(SomethingHappened), [])


# ===================================================================
# Record store
# ===================================================================

class DjangoRecordStoreTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin, cls.second_admin, cls.rep, cls.customer = make_people()
        cls.order = Order.objects.create(customer=cls.customer, order_name="Logo pack")

    def setUp(self):
        self.store = DjangoRecordStore()

    async def test_get_returns_json_row(self):
        row = await self.store.get("orders", self.order.pk)
        self.assertEqual(row["id"], str(self.order.pk))
        self.assertEqual(row["customer_id"], str(self.customer.pk))
        self.assertEqual(row["version"], 1)

    async def test_get_missing_or_malformed_id_is_none(self):
        self.assertIsNone(await self.store.get("orders", "not-a-uuid"))
        self.assertIsNone(await self.store.get("orders", ""))

    async def test_unknown_collection(self):
        with self.assertRaises(UnknownCollection):
            await self.store.get("widgets", "x")

    async def test_update_bumps_version(self):
        row = await self.store.update("orders", self.order.pk, {"order_name": "Logo pack v2"})
        self.assertEqual(row["order_name"], "Logo pack v2")
        self.assertEqual(row["version"], 2)

    async def test_update_with_stale_version_raises(self):
        await self.store.update("orders", self.order.pk, {"order_name": "first"})
        with self.assertRaises(StaleRecord):
            await self.store.update(
                "orders",
                self.order.pk,
                {"order_name": "second"},
                expected_version=1,
            )

    async def test_update_missing_row_raises(self):
        with self.assertRaises(RecordNotFound):
            await self.store.update("orders", "00000000-0000-0000-0000-000000000000", {"order_name": "x"})

    async def test_bulk_update_where_counts_and_bumps_versions(self):
        updated = await self.store.bulk_update_where(
            "orders",
            "id",
            [str(self.order.pk)],
            {"payment_status": "paid"},
        )
        self.assertEqual(updated, 1)
        row = await self.store.get("orders", self.order.pk)
        self.assertEqual(row["payment_status"], "paid")
        self.assertEqual(row["version"], 2)

    async def test_broadcast_inserts_one_row_per_value(self):
        count = await self.store.broadcast(
            "notifications",
            "recipient_id",
            [str(self.admin.pk), str(self.rep.pk)],
            {"type": "system", "message": "hello"},
        )
        self.assertEqual(count, 2)
        self.assertEqual(await self.store.count_where("notifications", {"message": "hello"}), 2)

    async def test_delete(self):
        [row] = await self.store.insert(
            "notifications",
            [{"recipient_id": str(self.admin.pk), "type": "system", "message": "bye"}],
        )
        self.assertTrue(await self.store.delete("notifications", row["id"]))
        self.assertFalse(await self.store.delete("notifications", row["id"]))


# ===================================================================
# Notifications
# ===================================================================

class NotificationDispatcherTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin, cls.second_admin, cls.rep, cls.customer = make_people()

    def setUp(self):
        self.notifier = NotificationDispatcher(DjangoRecordStore())

    async def test_notify_inserts_one_row(self):
        row = await self.notifier.notify(str(self.customer.pk), "order", "Hi")
        self.assertEqual(row["message"], "Hi")
        self.assertEqual(
            await Notification.objects.for_recipient(self.customer.pk).acount(),
            1,
        )

    async def test_notify_without_recipient_is_skipped(self):
        self.assertIsNone(await self.notifier.notify(None, "order", "Hi"))
        self.assertEqual(await Notification.objects.acount(), 0)

    async def test_batch_with_mixed_messages(self):
        written = await self.notifier.notify_batch(
            [
                NotificationEntry(str(self.admin.pk), "order", "one"),
                NotificationEntry(str(self.rep.pk), "order", "two"),
            ]
        )
        self.assertEqual(written, 2)

    async def test_admin_alerts_skip_disabled_admins(self):
        written = await self.notifier.notify_admins_about_new_customer("Huda")
        self.assertEqual(written, 2)
        self.assertEqual(
            await Notification.objects.filter(type="user").acount(),
            2,
        )

    async def test_new_employee_alert_mentions_role(self):
        await self.notifier.notify_admins_about_new_employee("Dana", "sales_rep")
        message = await Notification.objects.values_list("message", flat=True).afirst()
        self.assertIn("(sales rep)", message)

    async def test_failures_are_swallowed_and_dead_lettered(self):
        notifier = NotificationDispatcher(FailingStore())
        with self.assertLogs(DEAD_LETTER, level="ERROR"):
            self.assertIsNone(await notifier.notify("r1", "order", "x"))
        with self.assertLogs(DEAD_LETTER, level="ERROR"):
            self.assertEqual(
                await notifier.notify_batch([NotificationEntry("r1", "order", "x")]),
                0,
            )

    async def test_invoice_status_change_only_for_paid_or_cancelled(self):
        invoice = {"customer_id": str(self.customer.pk), "invoice_title": "October"}
        self.assertEqual(await self.notifier.notify_about_invoice_status_change(invoice, "unpaid"), 0)
        self.assertEqual(await self.notifier.notify_about_invoice_status_change(invoice, "paid"), 3)

    async def test_edit_request_alert_includes_rep_for_custom_orders(self):
        order = {
            "id": "o1",
            "order_name": "Poster",
            "order_type": "custom",
            "customer_id": str(self.customer.pk),
            "assigned_sales_rep_id": str(self.rep.pk),
        }
        self.assertEqual(await self.notifier.notify_about_edit_request(order), 4)

        order["order_type"] = "stock_design"
        self.assertEqual(await self.notifier.notify_about_edit_request(order), 3)

    async def test_unread_count_and_mark_all_read(self):
        recipient = str(self.customer.pk)
        await self.notifier.notify(recipient, "order", "a")
        await self.notifier.notify(recipient, "order", "b")
        self.assertEqual(await self.notifier.unread_count(recipient), 2)
        self.assertEqual(
            await Notification.objects.for_recipient(self.customer.pk).unread().acount(),
            2,
        )

        first = await self.notifier.notify(recipient, "order", "c")
        await self.notifier.mark_read(first["id"])
        unread = await self.notifier.list_for(recipient, unread_only=True)
        self.assertEqual(sorted(row["message"] for row in unread), ["a", "b"])

        self.assertEqual(await self.notifier.mark_all_read(recipient), 2)
        self.assertEqual(await self.notifier.unread_count(recipient), 0)

    async def test_mark_read(self):
        row = await self.notifier.notify(str(self.customer.pk), "order", "a")
        updated = await self.notifier.mark_read(row["id"])
        self.assertTrue(updated["read"])


# ===================================================================
# Realtime
# ===================================================================

class RealtimeSubscriptionManagerTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin, cls.second_admin, cls.rep, cls.customer = make_people()
        cls.order = Order.objects.create(customer=cls.customer, order_name="Menu")

    def setUp(self):
        self.store = DjangoRecordStore()
        self.manager = RealtimeSubscriptionManager(self.store).open()
        self.addCleanup(self.manager.close_all)

    def test_subscribe_is_idempotent_by_id(self):
        spec = SubscriptionSpec(collection="orders")
        first = self.manager.subscribe("orders-u1", spec)
        second = self.manager.subscribe("orders-u1", spec)
        self.assertIs(first, second)
        self.assertEqual(len(self.manager), 1)

    def test_unsubscribe_all_empties_registry(self):
        self.manager.subscribe("orders-u1", SubscriptionSpec(collection="orders"))
        channel = self.manager.subscribe("notes-u1", SubscriptionSpec(collection="notifications"))

        self.manager.unsubscribe_all()

        self.assertEqual(len(self.manager), 0)
        self.assertFalse(channel.is_joined)
        self.assertIsNone(self.manager.get_channel("orders-u1"))

    def test_closed_manager_refuses_subscriptions(self):
        manager = RealtimeSubscriptionManager(self.store)
        with self.assertRaises(RuntimeError):
            manager.subscribe("x", SubscriptionSpec(collection="orders"))

    def test_unknown_collection_is_rejected(self):
        with self.assertRaises(UnknownCollection):
            self.manager.subscribe("x", SubscriptionSpec(collection="widgets"))

    async def test_store_updates_reach_typed_and_catch_all_callbacks(self):
        kinds, updates = [], []
        self.manager.subscribe(
            "orders-u1",
            SubscriptionSpec(
                collection="orders",
                on_update=lambda event: updates.append(event.row["order_name"]),
                on_change=lambda event: kinds.append(event.kind),
            ),
        )

        await self.store.update("orders", self.order.pk, {"order_name": "Menu v2"})

        self.assertEqual(updates, ["Menu v2"])
        self.assertEqual(kinds, [UPDATE])

    async def test_notification_channel_filters_by_recipient(self):
        received = []
        self.manager.subscribe_to_notifications(str(self.customer.pk), on_insert=received.append)

        notifier = NotificationDispatcher(self.store)
        await notifier.notify(str(self.customer.pk), "order", "for you")
        await notifier.notify(str(self.admin.pk), "order", "not for you")

        self.assertEqual([row["message"] for row in received], ["for you"])

    def test_model_deletes_are_published(self):
        received = []
        self.manager.subscribe_to_orders("u1", on_delete=received.append)
        order = Order.objects.create(customer=self.customer, order_name="Temp")
        order_id = str(order.pk)

        order.delete()

        self.assertEqual([row["id"] for row in received], [order_id])

    def test_failing_callback_does_not_break_writes(self):
        def explode(event):
            raise RuntimeError("render failed")

        self.manager.subscribe("orders-u1", SubscriptionSpec(collection="orders", on_insert=explode))
        with self.assertLogs("core.realtime", level="ERROR"):
            Order.objects.create(customer=self.customer, order_name="Still saved")
        self.assertTrue(Order.objects.filter(order_name="Still saved").exists())

    def test_unsubscribe_stops_delivery(self):
        received = []
        self.manager.subscribe("orders-u1", SubscriptionSpec(collection="orders", on_change=received.append))
        self.manager.unsubscribe("orders-u1")

        Order.objects.create(customer=self.customer, order_name="Quiet")

        self.assertEqual(received, [])
        self.assertFalse(self.manager.is_subscribed("orders-u1"))

    def test_customer_directory_channel(self):
        inserted, updated = [], []
        channel = self.manager.subscribe_to_customers(on_insert=inserted.append, on_update=updated.append)

        customer = Customer.objects.create(full_name="Nour Customer")
        customer.company_name = "Nour Prints"
        customer.save()

        self.assertEqual(channel.id, "customers-all")
        self.assertEqual([row["full_name"] for row in inserted], ["Nour Customer"])
        self.assertEqual([row["company_name"] for row in updated], ["Nour Prints"])


class ChangeFilterTests(SimpleTestCase):
    def test_event_and_row_filter(self):
        change_filter = ChangeFilter(event=INSERT, row_filter={"recipient_id": "u1"})
        self.assertTrue(change_filter.matches(ChangeEvent("notifications", INSERT, new={"recipient_id": "u1"})))
        self.assertFalse(change_filter.matches(ChangeEvent("notifications", UPDATE, new={"recipient_id": "u1"})))
        self.assertFalse(change_filter.matches(ChangeEvent("notifications", INSERT, new={"recipient_id": "u2"})))

    def test_deletes_match_on_old_row(self):
        change_filter = ChangeFilter(row_filter={"order_id": "o1"})
        self.assertTrue(change_filter.matches(ChangeEvent("edit_comments", DELETE, old={"order_id": "o1"})))

    def test_unknown_event_kind(self):
        with self.assertRaises(ValueError):
            ChangeFilter(event="upsert")


# ===================================================================
# Numbering
# ===================================================================

class NumberingTests(TestCase):
    def test_sequence_increments_per_key(self):
        first = generate_number("orders.Order")
        second = generate_number("orders.Order")
        self.assertTrue(first.startswith("ORD-"))
        self.assertTrue(first.endswith("-0001"))
        self.assertTrue(second.endswith("-0002"))

    def test_custom_pattern(self):
        self.assertEqual(generate_number("misc", pattern="X{seq}"), "X1")

    def test_periods_count_independently(self):
        self.assertEqual(NumberSequence.objects.next_value("orders.Order", "2025"), 1)
        self.assertEqual(NumberSequence.objects.next_value("orders.Order", "2025"), 2)
        self.assertEqual(NumberSequence.objects.next_value("orders.Order", "2026"), 1)
        self.assertEqual(str(NumberSequence.objects.get(period="2025")), "orders.Order/2025: 2")


# ===================================================================
# HTTP
# ===================================================================

class NotificationApiTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin, cls.second_admin, cls.rep, cls.customer = make_people()
        cls.mine = Notification.objects.create(recipient_id=cls.customer.pk, type="order", message="mine")
        Notification.objects.create(recipient_id=cls.admin.pk, type="order", message="theirs")

    def headers(self, actor_id, role="customer"):
        return {"HTTP_X_ACTOR_ID": str(actor_id), "HTTP_X_ACTOR_ROLE": role}

    def test_list_requires_actor(self):
        response = self.client.get(reverse("core:notification_list"))
        self.assertEqual(response.status_code, 401)

    def test_list_returns_only_own_notifications(self):
        response = self.client.get(reverse("core:notification_list"), **self.headers(self.customer.pk))
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual([row["message"] for row in data["results"]], ["mine"])
        self.assertEqual(data["unread_count"], 1)

    def test_mark_read(self):
        url = reverse("core:notification_mark_read", args=[self.mine.pk])
        response = self.client.post(url, **self.headers(self.customer.pk))
        self.assertEqual(response.status_code, 200)
        self.mine.refresh_from_db()
        self.assertTrue(self.mine.read)

    def test_cannot_mark_someone_elses_notification(self):
        url = reverse("core:notification_mark_read", args=[self.mine.pk])
        response = self.client.post(url, **self.headers(self.admin.pk, "admin"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["reason"], "RecordNotFound")
