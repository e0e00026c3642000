# accounting/tests.py
import json
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from atelier.engine import WorkflowEngine
from contacts.models import Customer, Employee
from core.actors import ActorContext, Role
from core.errors import StaleRecord
from core.models import Notification
from core.results import Rejection
from orders.models import Order
from orders.patches import OrderPatch
from .models import Invoice
from .patches import InvoicePatch


class InvoiceTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = Employee.objects.create(full_name="Amal Admin", role="admin")
        cls.customer = Customer.objects.create(full_name="Huda Customer")
        cls.other_customer = Customer.objects.create(full_name="Omar Customer")

        cls.o1 = Order.objects.create(customer=cls.customer, order_name="o1")
        cls.o2 = Order.objects.create(customer=cls.customer, order_name="o2")
        cls.o3 = Order.objects.create(customer=cls.customer, order_name="o3")
        cls.foreign = Order.objects.create(customer=cls.other_customer, order_name="foreign")

        cls.invoice = Invoice.objects.create(
            customer=cls.customer,
            invoice_title="October 2026",
            month_year="2026-10",
            order_ids=[str(cls.o1.pk), str(cls.o2.pk)],
            total_amount=Decimal("200.00"),
        )

    def setUp(self):
        self.engine = WorkflowEngine().open()
        self.addCleanup(self.engine.close_all)
        self.admin_actor = ActorContext(str(self.admin.pk), Role.ADMIN)

    async def payment_statuses(self):
        return {
            order.order_name: order.payment_status
            async for order in Order.objects.all()
        }


# ===================================================================
# InvoiceReconciler.update_invoice
# ===================================================================

class UpdateInvoiceTests(InvoiceTestCase):
    async def test_replacing_orders_and_paying(self):
        await Order.objects.filter(pk=self.o1.pk).aupdate(payment_status=Order.PaymentStatus.PAID)

        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(order_ids=[str(self.o2.pk), str(self.o3.pk)], status="paid"),
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.value["order_ids"], [str(self.o2.pk), str(self.o3.pk)])
        self.assertEqual(
            await self.payment_statuses(),
            {"o1": "unpaid", "o2": "paid", "o3": "paid", "foreign": "unpaid"},
        )

    async def test_replacing_orders_on_unpaid_invoice(self):
        await Order.objects.filter(pk__in=[self.o1.pk, self.o2.pk]).aupdate(
            payment_status=Order.PaymentStatus.PAID
        )

        await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(order_ids=[str(self.o3.pk)]),
        )

        statuses = await self.payment_statuses()
        self.assertEqual(statuses["o1"], "unpaid")
        self.assertEqual(statuses["o2"], "unpaid")
        self.assertEqual(statuses["o3"], "unpaid")

    async def test_paying_marks_current_orders_paid_and_notifies(self):
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(status="paid"),
            self.admin_actor,
        )

        self.assertTrue(result.ok)
        statuses = await self.payment_statuses()
        self.assertEqual((statuses["o1"], statuses["o2"], statuses["o3"]), ("paid", "paid", "unpaid"))
        self.assertEqual(await Order.objects.for_customer(self.customer.pk).paid().acount(), 2)

        # customer + the admin
        self.assertEqual(await Notification.objects.acount(), 2)
        customer_note = await Notification.objects.for_recipient(self.customer.pk).aget()
        self.assertIn("has been paid", customer_note.message)

    async def test_leaving_paid_marks_orders_unpaid(self):
        await self.engine.invoices.update_invoice(self.invoice.pk, InvoicePatch(status="paid"))

        await self.engine.invoices.update_invoice(self.invoice.pk, InvoicePatch(status="unpaid"))

        statuses = await self.payment_statuses()
        self.assertEqual((statuses["o1"], statuses["o2"]), ("unpaid", "unpaid"))

    async def test_cancellation_notifies(self):
        await self.engine.invoices.update_invoice(self.invoice.pk, InvoicePatch(status="cancelled"))

        customer_note = await Notification.objects.for_recipient(self.customer.pk).aget()
        self.assertIn("cancelled", customer_note.message)

    async def test_title_change_is_silent(self):
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(invoice_title="October (revised)"),
        )

        self.assertEqual(result.value["invoice_title"], "October (revised)")
        self.assertEqual(await Notification.objects.acount(), 0)

    async def test_orders_of_another_customer_are_rejected(self):
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(order_ids=[str(self.o1.pk), str(self.foreign.pk)], status="paid"),
        )

        self.assertEqual(result.reason, Rejection.CUSTOMER_MISMATCH)
        await self.invoice.arefresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.UNPAID)
        self.assertEqual((await self.payment_statuses())["o1"], "unpaid")

    async def test_malformed_order_id_is_rejected(self):
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(order_ids=["o1"]),
        )
        self.assertEqual(result.reason, Rejection.CUSTOMER_MISMATCH)

    async def test_negative_total(self):
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(total_amount=Decimal("-1")),
        )
        self.assertEqual(result.reason, Rejection.INVALID_AMOUNT)

    async def test_non_finite_total(self):
        for raw in ("NaN", "Infinity"):
            with self.subTest(amount=raw):
                result = await self.engine.invoices.update_invoice(
                    self.invoice.pk,
                    InvoicePatch.from_payload({"total_amount": raw}),
                )
                self.assertEqual(result.reason, Rejection.INVALID_AMOUNT)

        created = await self.engine.invoices.create_invoice(
            str(self.customer.pk),
            "November 2026",
            "2026-11",
            [],
            "NaN",
        )
        self.assertEqual(created.reason, Rejection.INVALID_AMOUNT)

    async def test_only_admins_edit_invoices(self):
        designer = ActorContext("d1", Role.DESIGNER)
        result = await self.engine.invoices.update_invoice(
            self.invoice.pk,
            InvoicePatch(status="paid"),
            designer,
        )
        self.assertEqual(result.reason, Rejection.FORBIDDEN)

    async def test_sweep_invalidates_older_order_snapshots(self):
        stale_version = (await self.engine.store.get("orders", self.o1.pk))["version"]

        await self.engine.invoices.update_invoice(self.invoice.pk, InvoicePatch(status="paid"))

        with self.assertRaises(StaleRecord):
            await self.engine.store.update(
                "orders",
                self.o1.pk,
                {"order_name": "late write"},
                expected_version=stale_version,
            )

        # a fresh read goes through
        result = await self.engine.orders.update_order(
            self.o1.pk,
            OrderPatch(order_name="fresh write"),
            self.admin_actor,
        )
        self.assertTrue(result.ok)
        self.assertEqual(result.value["payment_status"], "paid")


# ===================================================================
# InvoiceReconciler.create_invoice
# ===================================================================

class CreateInvoiceTests(InvoiceTestCase):
    async def test_create_invoice(self):
        await Order.objects.filter(pk=self.o3.pk).aupdate(payment_status=Order.PaymentStatus.PAID)

        result = await self.engine.invoices.create_invoice(
            str(self.customer.pk),
            "November 2026",
            "2026-11",
            [str(self.o3.pk)],
            "90.00",
            payment_link="https://pay.example.com/inv/11",
            actor=self.admin_actor,
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.value["status"], "unpaid")
        self.assertEqual(result.value["order_ids"], [str(self.o3.pk)])
        self.assertEqual((await self.payment_statuses())["o3"], "unpaid")
        self.assertEqual(await Invoice.objects.for_customer(self.customer.pk).acount(), 2)

        messages = [
            message
            async for message in Notification.objects.filter(type="invoice").values_list("message", flat=True)
        ]
        self.assertEqual(len(messages), 2)
        self.assertTrue(any("November 2026" in message for message in messages))

    async def test_create_invoice_checks_customer(self):
        result = await self.engine.invoices.create_invoice(
            str(self.customer.pk),
            "November 2026",
            "2026-11",
            [str(self.foreign.pk)],
            "90.00",
        )
        self.assertEqual(result.reason, Rejection.CUSTOMER_MISMATCH)
        self.assertEqual(await Invoice.objects.acount(), 1)


# ===================================================================
# HTTP
# ===================================================================

class InvoiceApiTests(InvoiceTestCase):
    def post(self, url, payload, actor_id, role):
        return self.client.post(
            url,
            data=json.dumps(payload),
            content_type="application/json",
            HTTP_X_ACTOR_ID=str(actor_id),
            HTTP_X_ACTOR_ROLE=role,
        )

    def test_admin_marks_invoice_paid(self):
        response = self.post(
            reverse("accounting:invoice_update", args=[self.invoice.pk]),
            {"status": "paid"},
            self.admin.pk,
            "admin",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "paid")
        self.o1.refresh_from_db()
        self.assertEqual(self.o1.payment_status, Order.PaymentStatus.PAID)
        self.assertTrue(Invoice.objects.paid().filter(pk=self.invoice.pk).exists())

    def test_customer_cannot_update_invoice(self):
        response = self.post(
            reverse("accounting:invoice_update", args=[self.invoice.pk]),
            {"status": "paid"},
            self.customer.pk,
            "customer",
        )
        self.assertEqual(response.status_code, 403)

    def test_order_ids_must_be_a_list(self):
        response = self.post(
            reverse("accounting:invoice_update", args=[self.invoice.pk]),
            {"order_ids": "o1"},
            self.admin.pk,
            "admin",
        )
        self.assertEqual(response.status_code, 400)

    def test_create_endpoint(self):
        response = self.post(
            reverse("accounting:invoice_create"),
            {
                "customer_id": str(self.customer.pk),
                "invoice_title": "December 2026",
                "month_year": "2026-12",
                "order_ids": [str(self.o3.pk)],
                "total_amount": "15.00",
            },
            self.admin.pk,
            "admin",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["invoice_title"], "December 2026")
