# orders/tests.py
import json
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from atelier.engine import WorkflowEngine
from contacts.models import Customer, Employee
from core.actors import ActorContext, Role
from core.errors import RecordNotFound, StaleRecord
from core.models import Notification
from core.results import Rejection
from core.store import DjangoRecordStore
from .domain import OrderStatusChanged
from .models import EditComment, EditRequest, Order
from .patches import OrderPatch
from .validators import can_resolve_edit_request, can_transition, validate

DEAD_LETTER = "atelier.deadletter"

ADMIN = ActorContext("a1", Role.ADMIN)
SALES_REP = ActorContext("s1", Role.SALES_REP)
DESIGNER = ActorContext("d1", Role.DESIGNER)
CUSTOMER = ActorContext("c1", Role.CUSTOMER)
ALL_ACTORS = (ADMIN, SALES_REP, DESIGNER, CUSTOMER)


def snapshot(**overrides):
    row = {
        "id": "o1",
        "status": "pending",
        "customer_id": "c1",
        "assigned_sales_rep_id": None,
        "assigned_designer_id": None,
        "total_amount": Decimal("0.00"),
        "version": 1,
    }
    row.update(overrides)
    return row


# ===================================================================
# Validator
# ===================================================================

class StatusTransitionValidatorTests(SimpleTestCase):
    def assertRejected(self, result, reason):
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, reason)

    def test_in_progress_requires_designer_for_every_role(self):
        for actor in ALL_ACTORS:
            with self.subTest(role=actor.role):
                result = validate(snapshot(), OrderPatch(status="in_progress"), actor)
                self.assertRejected(result, Rejection.MISSING_DESIGNER)

    def test_designer_in_patch_satisfies_rule(self):
        result = validate(
            snapshot(),
            OrderPatch(status="in_progress", assigned_designer_id="d1"),
            DESIGNER,
        )
        self.assertTrue(result.ok)

    def test_clearing_designer_with_empty_string(self):
        result = validate(
            snapshot(status="assigned", assigned_designer_id="d1"),
            OrderPatch(status="in_progress", assigned_designer_id=""),
            ADMIN,
        )
        self.assertRejected(result, Rejection.MISSING_DESIGNER)

    def test_locked_orders_only_editable_by_admin_or_sales_rep(self):
        for status in ("completed", "cancelled"):
            for actor in (DESIGNER, CUSTOMER):
                with self.subTest(status=status, role=actor.role):
                    result = validate(snapshot(status=status), OrderPatch(order_name="x"), actor)
                    self.assertRejected(result, Rejection.FORBIDDEN)

            for actor in (ADMIN, SALES_REP):
                with self.subTest(status=status, role=actor.role):
                    result = validate(snapshot(status=status), OrderPatch(order_name="x"), actor)
                    self.assertTrue(result.ok)

    def test_negative_amount(self):
        result = validate(snapshot(), OrderPatch(total_amount=Decimal("-1")), ADMIN)
        self.assertRejected(result, Rejection.INVALID_AMOUNT)

    def test_non_finite_amounts(self):
        for raw in ("NaN", "Infinity", "-Infinity", "sNaN", "twelve", float("nan")):
            with self.subTest(amount=raw):
                patch = OrderPatch.from_payload({"total_amount": raw})
                self.assertRejected(validate(snapshot(), patch, ADMIN), Rejection.INVALID_AMOUNT)

        result = validate(snapshot(), OrderPatch(total_amount=Decimal("Infinity")), ADMIN)
        self.assertRejected(result, Rejection.INVALID_AMOUNT)

    def test_customer_cannot_edit_someone_elses_order(self):
        result = validate(snapshot(customer_id="c2"), OrderPatch(order_name="mine now"), CUSTOMER)
        self.assertRejected(result, Rejection.FORBIDDEN)
        self.assertTrue(validate(snapshot(), OrderPatch(order_name="renamed"), CUSTOMER).ok)

    def test_illegal_moves(self):
        cases = [
            ("pending", "completed"),
            ("assigned", "review"),
            ("completed", "new"),
            ("delivered", "cancelled"),
            ("cancelled", "pending"),
            ("pending", "shipped"),
        ]
        for current, target in cases:
            with self.subTest(move=f"{current}->{target}"):
                result = validate(
                    snapshot(status=current, assigned_designer_id="d1"),
                    OrderPatch(status=target),
                    ADMIN,
                )
                self.assertRejected(result, Rejection.INVALID_STATE)

    def test_same_status_is_a_no_op(self):
        result = validate(snapshot(status="review"), OrderPatch(status="review"), DESIGNER)
        self.assertTrue(result.ok)

    def test_cancel_from_any_non_terminal_status(self):
        for current in ("pending", "assigned", "in_progress", "review", "completed", "new"):
            with self.subTest(current=current):
                result = validate(snapshot(status=current), OrderPatch(status="cancelled"), ADMIN)
                self.assertTrue(result.ok)

    def test_completion_needs_sales_rep_unless_admin(self):
        order = snapshot(status="review", assigned_designer_id="d1", total_amount=Decimal("50"))

        self.assertRejected(
            validate(order, OrderPatch(status="completed"), DESIGNER),
            Rejection.MISSING_SALES_REP,
        )
        self.assertTrue(validate(order, OrderPatch(status="completed"), ADMIN).ok)
        self.assertTrue(
            validate(order, OrderPatch(status="completed", assigned_sales_rep_id="s1"), DESIGNER).ok
        )

    def test_completion_needs_positive_amount(self):
        order = snapshot(status="review", assigned_sales_rep_id="s1", total_amount=Decimal("0"))
        self.assertRejected(
            validate(order, OrderPatch(status="completed"), ADMIN),
            Rejection.INVALID_AMOUNT,
        )
        self.assertTrue(
            validate(order, OrderPatch(status="completed", total_amount=Decimal("10")), ADMIN).ok
        )

    def test_forbidden_checked_before_amount(self):
        result = validate(snapshot(status="completed"), OrderPatch(total_amount=Decimal("-5")), CUSTOMER)
        self.assertRejected(result, Rejection.FORBIDDEN)

    def test_reopen_only_through_edit_workflow(self):
        self.assertFalse(can_transition("completed", "new"))
        self.assertTrue(can_transition("completed", "new", via_edit_request=True))
        self.assertFalse(can_transition("delivered", "new", via_edit_request=True))

    def test_edit_request_resolutions(self):
        self.assertTrue(can_resolve_edit_request("pending", "approved"))
        self.assertTrue(can_resolve_edit_request("pending", "rejected"))
        self.assertTrue(can_resolve_edit_request("approved", "completed"))
        self.assertFalse(can_resolve_edit_request("pending", "completed"))
        self.assertFalse(can_resolve_edit_request("rejected", "approved"))
        self.assertFalse(can_resolve_edit_request("completed", "pending"))


# ===================================================================
# Shared fixtures
# ===================================================================

class WorkflowTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = Employee.objects.create(full_name="Amal Admin", role="admin")
        cls.rep = Employee.objects.create(full_name="Salim Rep", role="sales_rep")
        cls.designer = Employee.objects.create(full_name="Dana Designer", role="designer")
        cls.customer = Customer.objects.create(full_name="Huda Customer", assigned_sales_rep=cls.rep)
        cls.other_customer = Customer.objects.create(full_name="Omar Customer")

    def setUp(self):
        self.engine = WorkflowEngine().open()
        self.addCleanup(self.engine.close_all)

        self.admin_actor = ActorContext(str(self.admin.pk), Role.ADMIN)
        self.rep_actor = ActorContext(str(self.rep.pk), Role.SALES_REP)
        self.designer_actor = ActorContext(str(self.designer.pk), Role.DESIGNER)
        self.customer_actor = ActorContext(str(self.customer.pk), Role.CUSTOMER)

    async def make_order(self, **fields):
        fields.setdefault("customer", self.customer)
        fields.setdefault("order_name", "Wedding invitations")
        return await Order.objects.acreate(**fields)

    async def notifications_for(self, recipient):
        return [
            message
            async for message in Notification.objects.for_recipient(recipient.pk).values_list(
                "message", flat=True
            )
        ]


# ===================================================================
# OrderLifecycleService
# ===================================================================

class OrderLifecycleServiceTests(WorkflowTestCase):
    async def test_in_progress_without_designer_is_rejected(self):
        order = await self.make_order()

        result = await self.engine.orders.update_order(
            order.pk,
            OrderPatch(status="in_progress"),
            self.admin_actor,
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, Rejection.MISSING_DESIGNER)
        await order.arefresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.version, 1)
        self.assertEqual(await Notification.objects.acount(), 0)

    async def test_start_work_with_designer_notifies_designer_once(self):
        order = await self.make_order()

        result = await self.engine.orders.update_order(
            order.pk,
            OrderPatch(status="in_progress", assigned_designer_id=str(self.designer.pk)),
            self.admin_actor,
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.value["status"], "in_progress")
        self.assertEqual(result.value["assigned_designer_name"], "Dana Designer")
        self.assertEqual(await Notification.objects.acount(), 1)
        messages = await self.notifications_for(self.designer)
        self.assertEqual(len(messages), 1)
        self.assertIn("assigned to you", messages[0])

    async def test_repeating_a_patch_is_idempotent(self):
        order = await self.make_order()
        patch = OrderPatch(assigned_designer_id=str(self.designer.pk), order_name="Menu cards")

        first = await self.engine.orders.update_order(order.pk, patch, self.rep_actor)
        second = await self.engine.orders.update_order(order.pk, patch, self.rep_actor)

        self.assertEqual(first.value, second.value)
        self.assertEqual(second.value["version"], 2)
        self.assertEqual(len(await self.notifications_for(self.designer)), 1)

    async def test_review_notifies_sales_rep(self):
        order = await self.make_order(
            status=Order.Status.IN_PROGRESS,
            assigned_designer=self.designer,
            assigned_sales_rep=self.rep,
        )

        result = await self.engine.orders.update_order(order.pk, OrderPatch(status="review"), self.designer_actor)

        self.assertTrue(result.ok)
        messages = await self.notifications_for(self.rep)
        self.assertEqual(len(messages), 1)
        self.assertIn("under review", messages[0])

    async def test_completion_notifies_customer(self):
        order = await self.make_order(
            status=Order.Status.REVIEW,
            assigned_designer=self.designer,
            assigned_sales_rep=self.rep,
            total_amount=Decimal("120.00"),
        )

        result = await self.engine.orders.update_order(order.pk, OrderPatch(status="completed"), self.rep_actor)

        self.assertTrue(result.ok)
        messages = await self.notifications_for(self.customer)
        self.assertEqual(len(messages), 1)
        self.assertIn("has been completed", messages[0])

    async def test_joined_view_names(self):
        order = await self.make_order(assigned_sales_rep=self.rep)

        result = await self.engine.orders.update_order(order.pk, OrderPatch(order_name="Menu"), self.admin_actor)

        self.assertEqual(result.value["customer_name"], "Huda Customer")
        self.assertEqual(result.value["assigned_sales_rep_name"], "Salim Rep")
        self.assertIsNone(result.value["assigned_designer_name"])

    async def test_customer_cannot_touch_another_customers_order(self):
        order = await self.make_order(customer=self.other_customer, total_amount=Decimal("40.00"))

        result = await self.engine.orders.update_order(
            order.pk,
            OrderPatch(total_amount=Decimal("0.01"), order_name="taken over"),
            self.customer_actor,
        )

        self.assertEqual(result.reason, Rejection.FORBIDDEN)
        await order.arefresh_from_db()
        self.assertEqual(order.order_name, "Wedding invitations")
        self.assertEqual(order.total_amount, Decimal("40.00"))

    async def test_missing_order_raises(self):
        with self.assertRaises(RecordNotFound):
            await self.engine.orders.update_order(
                "00000000-0000-0000-0000-000000000000",
                OrderPatch(order_name="x"),
                self.admin_actor,
            )

    async def test_write_that_loses_a_race_raises_stale_record(self):
        class SweepingStore(DjangoRecordStore):
            """An invoice sweep lands between every order read and write."""

            async def get(self, collection, record_id):
                row = await super().get(collection, record_id)
                if collection == "orders" and row is not None:
                    await self.bulk_update_where("orders", "id", [row["id"]], {"payment_status": "paid"})
                return row

        engine = WorkflowEngine(store=SweepingStore())
        order = await self.make_order()

        with self.assertRaises(StaleRecord):
            await engine.orders.update_order(order.pk, OrderPatch(order_name="late"), self.admin_actor)

        await order.arefresh_from_db()
        self.assertEqual(order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(order.order_name, "Wedding invitations")

    async def test_failing_handler_does_not_undo_update(self):
        def broken(event):
            raise RuntimeError("mail server down")

        self.engine.events.subscribe(OrderStatusChanged, broken)
        order = await self.make_order()

        with self.assertLogs(DEAD_LETTER, level="ERROR"):
            result = await self.engine.orders.update_order(
                order.pk,
                OrderPatch(status="assigned", assigned_designer_id=str(self.designer.pk)),
                self.admin_actor,
            )

        self.assertTrue(result.ok)
        await order.arefresh_from_db()
        self.assertEqual(order.status, Order.Status.ASSIGNED)

    async def test_place_order(self):
        result = await self.engine.orders.place_order(
            str(self.customer.pk),
            "custom",
            "Business cards",
            "35.50",
            self.customer_actor,
        )

        self.assertTrue(result.ok)
        order = result.value
        self.assertTrue(order["order_number"].startswith("ORD-"))
        self.assertEqual(order["status"], "pending")
        self.assertEqual(order["assigned_sales_rep_id"], str(self.rep.pk))
        self.assertEqual(order["total_amount"], Decimal("35.50"))
        self.assertEqual(await Order.objects.for_customer(self.customer.pk).acount(), 1)
        # customer, the admin, the customer's sales rep
        self.assertEqual(await Notification.objects.acount(), 3)

    async def test_customer_cannot_order_for_someone_else(self):
        result = await self.engine.orders.place_order(
            str(self.other_customer.pk),
            "custom",
            "Flyers",
            "10",
            self.customer_actor,
        )
        self.assertEqual(result.reason, Rejection.FORBIDDEN)
        self.assertEqual(await Order.objects.acount(), 0)


# ===================================================================
# EditRequestWorkflow
# ===================================================================

class EditRequestWorkflowTests(WorkflowTestCase):
    async def make_completed_order(self, **fields):
        fields.setdefault("status", Order.Status.COMPLETED)
        fields.setdefault("assigned_designer", self.designer)
        fields.setdefault("assigned_sales_rep", self.rep)
        fields.setdefault("total_amount", Decimal("80.00"))
        fields.setdefault("revision_count", 2)
        return await self.make_order(**fields)

    async def test_round_trip_reopens_order(self):
        order = await self.make_completed_order()

        result = await self.engine.edit_requests.create_edit_request(
            order.pk,
            "Please change the font",
            self.customer_actor,
        )

        self.assertTrue(result.ok)
        await order.arefresh_from_db()
        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(order.revision_count, 3)

        self.assertEqual(await EditRequest.objects.filter(order=order).acount(), 1)
        self.assertEqual(await EditRequest.objects.pending().filter(order=order).acount(), 1)

        comment = await EditComment.objects.aget(order=order)
        self.assertEqual(comment.content, "Please change the font")

        # customer, the admin, the sales rep (custom order)
        self.assertEqual(await Notification.objects.acount(), 3)
        self.assertEqual(len(await self.notifications_for(self.rep)), 1)

    async def test_stock_design_order_skips_sales_rep(self):
        order = await self.make_completed_order(order_type=Order.OrderType.STOCK_DESIGN)

        await self.engine.edit_requests.create_edit_request(order.pk, "Other colour", self.customer_actor)

        self.assertEqual(await Notification.objects.acount(), 2)
        self.assertEqual(await self.notifications_for(self.rep), [])

    async def test_only_completed_orders(self):
        order = await self.make_order(status=Order.Status.REVIEW)

        result = await self.engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)

        self.assertEqual(result.reason, Rejection.INVALID_STATE)
        self.assertEqual(await EditRequest.objects.acount(), 0)

    async def test_customer_must_own_order(self):
        order = await self.make_completed_order(customer=self.other_customer)

        result = await self.engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)

        self.assertEqual(result.reason, Rejection.FORBIDDEN)

    async def test_comment_failure_is_not_fatal(self):
        order = await self.make_completed_order()
        bot = ActorContext("ops-bot", Role.ADMIN)

        with self.assertLogs(DEAD_LETTER, level="ERROR"):
            result = await self.engine.edit_requests.create_edit_request(order.pk, "Resize", bot)

        self.assertTrue(result.ok)
        self.assertEqual(await EditComment.objects.acount(), 0)
        await order.arefresh_from_db()
        self.assertEqual(order.status, Order.Status.NEW)

    async def test_lost_race_leaves_no_request_behind(self):
        class SweepingStore(DjangoRecordStore):
            async def get(self, collection, record_id):
                row = await super().get(collection, record_id)
                if collection == "orders" and row is not None:
                    await self.bulk_update_where("orders", "id", [row["id"]], {"payment_status": "paid"})
                return row

        engine = WorkflowEngine(store=SweepingStore())
        order = await self.make_completed_order()

        with self.assertRaises(StaleRecord):
            await engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)

        self.assertEqual(await EditRequest.objects.acount(), 0)
        self.assertEqual(await Notification.objects.acount(), 0)

    async def test_resolve_approves_and_notifies_customer(self):
        order = await self.make_completed_order()
        created = await self.engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)
        before = len(await self.notifications_for(self.customer))

        result = await self.engine.edit_requests.resolve_edit_request(
            created.value["id"],
            "approved",
            self.designer_actor,
            designer_notes="Will do",
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.value["status"], "approved")
        self.assertEqual(result.value["resolved_by_id"], str(self.designer.pk))
        self.assertIsNotNone(result.value["resolved_at"])
        messages = await self.notifications_for(self.customer)
        self.assertEqual(len(messages), before + 1)

    async def test_resolve_rules(self):
        order = await self.make_completed_order()
        created = await self.engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)
        request_id = created.value["id"]

        forbidden = await self.engine.edit_requests.resolve_edit_request(request_id, "approved", self.customer_actor)
        self.assertEqual(forbidden.reason, Rejection.FORBIDDEN)

        skipped = await self.engine.edit_requests.resolve_edit_request(request_id, "completed", self.admin_actor)
        self.assertEqual(skipped.reason, Rejection.INVALID_STATE)

        rejected = await self.engine.edit_requests.resolve_edit_request(request_id, "rejected", self.admin_actor)
        self.assertTrue(rejected.ok)

        reopened = await self.engine.edit_requests.resolve_edit_request(request_id, "approved", self.admin_actor)
        self.assertEqual(reopened.reason, Rejection.INVALID_STATE)

    async def test_comments_only_on_open_requests(self):
        order = await self.make_completed_order()
        created = await self.engine.edit_requests.create_edit_request(order.pk, "x", self.customer_actor)
        request_id = created.value["id"]

        comment = await self.engine.edit_requests.add_comment(request_id, "Any update?", self.customer_actor)
        self.assertTrue(comment.ok)
        self.assertEqual(comment.value["order_id"], str(order.pk))

        await self.engine.edit_requests.resolve_edit_request(request_id, "rejected", self.admin_actor)
        closed = await self.engine.edit_requests.add_comment(request_id, "Why?", self.customer_actor)
        self.assertEqual(closed.reason, Rejection.INVALID_STATE)

    async def test_comment_channel_sees_new_comments(self):
        order = await self.make_completed_order()
        received = []
        self.engine.subscriptions.subscribe_to_edit_comments(str(order.pk), on_insert=received.append)

        await self.engine.edit_requests.create_edit_request(order.pk, "Bigger logo", self.customer_actor)

        self.assertEqual([row["content"] for row in received], ["Bigger logo"])


# ===================================================================
# Edit request history
# ===================================================================

class EditRequestHistoryTests(WorkflowTestCase):
    async def open_request(self):
        self.order = await self.make_order(
            status=Order.Status.COMPLETED,
            assigned_designer=self.designer,
            assigned_sales_rep=self.rep,
            total_amount=Decimal("80.00"),
        )
        created = await self.engine.edit_requests.create_edit_request(
            self.order.pk,
            "Please change the font",
            self.customer_actor,
        )
        self.request_id = created.value["id"]
        await self.engine.edit_requests.add_comment(self.request_id, "On it", self.designer_actor)

    async def test_list_for_order(self):
        await self.open_request()
        result = await self.engine.edit_requests.list_for_order(self.order.pk, self.customer_actor)

        self.assertTrue(result.ok)
        self.assertEqual([row["id"] for row in result.value], [self.request_id])

    async def test_list_for_customer(self):
        await self.open_request()
        result = await self.engine.edit_requests.list_for_customer(str(self.customer.pk), self.rep_actor)
        self.assertEqual(len(result.value), 1)

        other = await self.engine.edit_requests.list_for_customer(str(self.other_customer.pk), self.admin_actor)
        self.assertEqual(other.value, [])

    async def test_pending_queue_is_staff_only(self):
        await self.open_request()
        result = await self.engine.edit_requests.list_pending(self.designer_actor)
        self.assertEqual([row["status"] for row in result.value], ["pending"])

        await self.engine.edit_requests.resolve_edit_request(self.request_id, "approved", self.admin_actor)
        result = await self.engine.edit_requests.list_pending(self.admin_actor)
        self.assertEqual(result.value, [])

        denied = await self.engine.edit_requests.list_pending(self.customer_actor)
        self.assertEqual(denied.reason, Rejection.FORBIDDEN)

    async def test_comments_carry_author_names(self):
        await self.open_request()
        by_request = await self.engine.edit_requests.comments_for(
            self.customer_actor,
            edit_request_id=self.request_id,
        )
        by_order = await self.engine.edit_requests.comments_for(self.rep_actor, order_id=self.order.pk)

        self.assertEqual(
            [(row["content"], row["author_name"]) for row in by_request.value],
            [("Please change the font", "Huda Customer"), ("On it", "Dana Designer")],
        )
        self.assertEqual(by_order.value, by_request.value)

    async def test_comments_need_exactly_one_parent(self):
        await self.open_request()
        with self.assertRaises(ValueError):
            await self.engine.edit_requests.comments_for(self.admin_actor)

    async def test_other_customers_cannot_read_history(self):
        await self.open_request()
        stranger = ActorContext(str(self.other_customer.pk), Role.CUSTOMER)

        results = [
            await self.engine.edit_requests.list_for_order(self.order.pk, stranger),
            await self.engine.edit_requests.list_for_customer(str(self.customer.pk), stranger),
            await self.engine.edit_requests.comments_for(stranger, order_id=self.order.pk),
            await self.engine.edit_requests.comments_for(stranger, edit_request_id=self.request_id),
        ]

        self.assertEqual({result.reason for result in results}, {Rejection.FORBIDDEN})


# ===================================================================
# HTTP
# ===================================================================

class OrderApiTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = Employee.objects.create(full_name="Amal Admin", role="admin")
        cls.designer = Employee.objects.create(full_name="Dana Designer", role="designer")
        cls.customer = Customer.objects.create(full_name="Huda Customer")
        cls.other_customer = Customer.objects.create(full_name="Omar Customer")
        cls.order = Order.objects.create(customer=cls.customer, order_name="Poster")

    def post(self, url, payload, actor_id, role):
        return self.client.post(
            url,
            data=json.dumps(payload),
            content_type="application/json",
            HTTP_X_ACTOR_ID=str(actor_id),
            HTTP_X_ACTOR_ROLE=role,
        )

    def test_update_requires_actor(self):
        response = self.client.post(
            reverse("orders:order_update", args=[self.order.pk]),
            data="{}",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 401)

    def test_update_rejection_is_reported(self):
        response = self.post(
            reverse("orders:order_update", args=[self.order.pk]),
            {"status": "in_progress"},
            self.admin.pk,
            "admin",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["reason"], "MissingDesigner")

    def test_update_success(self):
        response = self.post(
            reverse("orders:order_update", args=[self.order.pk]),
            {"status": "in_progress", "assigned_designer_id": str(self.designer.pk)},
            self.admin.pk,
            "admin",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "in_progress")

    def test_unknown_patch_field_is_bad_request(self):
        response = self.post(
            reverse("orders:order_update", args=[self.order.pk]),
            {"payment_status": "paid"},
            self.admin.pk,
            "admin",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["reason"], "BadRequest")

    def test_locked_order_is_forbidden_for_customers(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.Status.COMPLETED)
        response = self.post(
            reverse("orders:order_update", args=[self.order.pk]),
            {"order_name": "Mine"},
            self.customer.pk,
            "customer",
        )
        self.assertEqual(response.status_code, 403)

    def test_edit_request_endpoint(self):
        Order.objects.filter(pk=self.order.pk).update(
            status=Order.Status.COMPLETED,
            total_amount=Decimal("10"),
        )
        response = self.post(
            reverse("orders:edit_request_create", args=[self.order.pk]),
            {"description": "Change the title"},
            self.customer.pk,
            "customer",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "pending")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.NEW)

    def test_missing_order_is_generic_failure(self):
        response = self.post(
            reverse("orders:order_update", args=["00000000-0000-0000-0000-000000000000"]),
            {"order_name": "x"},
            self.customer.pk,
            "customer",
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "The operation failed, please retry.")

    def test_non_finite_amount_is_rejected(self):
        url = reverse("orders:order_update", args=[self.order.pk])
        bare_nan = self.client.post(
            url,
            data='{"total_amount": NaN}',
            content_type="application/json",
            HTTP_X_ACTOR_ID=str(self.admin.pk),
            HTTP_X_ACTOR_ROLE="admin",
        )
        infinity = self.post(url, {"total_amount": "Infinity"}, self.admin.pk, "admin")

        for response in (bare_nan, infinity):
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["reason"], "InvalidAmount")

    def test_customer_cannot_update_someone_elses_order(self):
        response = self.post(
            reverse("orders:order_update", args=[self.order.pk]),
            {"total_amount": "0.01", "order_name": "hijacked"},
            self.other_customer.pk,
            "customer",
        )

        self.assertEqual(response.status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.order_name, "Poster")

    def test_edit_request_history_endpoints(self):
        Order.objects.filter(pk=self.order.pk).update(
            status=Order.Status.COMPLETED,
            total_amount=Decimal("10"),
        )
        created = self.post(
            reverse("orders:edit_request_create", args=[self.order.pk]),
            {"description": "Change the title"},
            self.customer.pk,
            "customer",
        ).json()["data"]

        headers = {"HTTP_X_ACTOR_ID": str(self.admin.pk), "HTTP_X_ACTOR_ROLE": "admin"}
        pending = self.client.get(reverse("orders:edit_request_pending"), **headers)
        history = self.client.get(reverse("orders:order_edit_requests", args=[self.order.pk]), **headers)
        thread = self.client.get(reverse("orders:edit_request_thread", args=[created["id"]]), **headers)
        mine = self.client.get(
            reverse("orders:edit_request_list"),
            HTTP_X_ACTOR_ID=str(self.customer.pk),
            HTTP_X_ACTOR_ROLE="customer",
        )

        self.assertEqual([row["id"] for row in pending.json()["data"]], [created["id"]])
        self.assertEqual([row["id"] for row in history.json()["data"]], [created["id"]])
        self.assertEqual([row["id"] for row in mine.json()["data"]], [created["id"]])
        self.assertEqual(thread.json()["data"][0]["author_name"], "Huda Customer")

        stranger = self.client.get(
            reverse("orders:order_edit_comments", args=[self.order.pk]),
            HTTP_X_ACTOR_ID=str(self.other_customer.pk),
            HTTP_X_ACTOR_ROLE="customer",
        )
        self.assertEqual(stranger.status_code, 403)
