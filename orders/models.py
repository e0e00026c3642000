# orders/models.py
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from contacts.models import Customer, Employee
from core.models import BaseModel, UUIDModel, VersionedModel
from .managers import EditRequestManager, OrderManager

DECIMAL_ZERO = Decimal("0.00")


# ===================================================================
# Order
# ===================================================================

class Order(BaseModel, VersionedModel):
    """
    Custom-goods order.

    Lifecycle:
        pending -> assigned -> in_progress -> review -> completed -> delivered
        (cancelled from any non-terminal status; completed -> new via edit request)

    Writes go through OrderLifecycleService / EditRequestWorkflow /
    InvoiceReconciler only; payment_status is a denormalized copy of the
    covering invoice's outcome.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        ASSIGNED = "assigned", _("Assigned")
        IN_PROGRESS = "in_progress", _("In progress")
        REVIEW = "review", _("Under review")
        COMPLETED = "completed", _("Completed")
        DELIVERED = "delivered", _("Delivered")
        CANCELLED = "cancelled", _("Cancelled")
        NEW = "new", _("New (re-opened)")

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid", _("Unpaid")
        PAID = "paid", _("Paid")

    class OrderType(models.TextChoices):
        CUSTOM = "custom", _("Custom")
        STOCK_DESIGN = "stock_design", _("Stock design")

    # ========== Identity ==========

    order_number = models.CharField(
        max_length=32,
        blank=True,
        db_index=True,
        verbose_name=_("Order number"),
    )

    order_name = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_("Order name"),
    )

    order_type = models.CharField(
        max_length=20,
        choices=OrderType.choices,
        default=OrderType.CUSTOM,
        verbose_name=_("Order type"),
    )

    # ========== Parties ==========

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="orders",
        verbose_name=_("Customer"),
    )

    assigned_sales_rep = models.ForeignKey(
        Employee,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="sales_orders",
        verbose_name=_("Sales representative"),
    )

    assigned_designer = models.ForeignKey(
        Employee,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="design_orders",
        verbose_name=_("Designer"),
    )

    # ========== State ==========

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
        db_index=True,
        verbose_name=_("Payment status"),
    )

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        validators=[MinValueValidator(DECIMAL_ZERO)],
        verbose_name=_("Total amount"),
    )

    revision_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Edits"),
    )

    # ========== Details ==========

    custom_description = models.TextField(blank=True, verbose_name=_("Description"))
    invoice_url = models.CharField(max_length=500, blank=True, verbose_name=_("Invoice URL"))

    objects = OrderManager()

    class Meta:
        ordering = ("-created_at",)
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")

    def __str__(self) -> str:
        return self.order_number or self.order_name or str(self.pk)


# ===================================================================
# Edit requests
# ===================================================================

class EditRequest(BaseModel):
    """
    Customer request to revise a completed order.

    State machine:
        pending -> approved | rejected
        approved -> completed
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")
        COMPLETED = "completed", _("Completed")

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="edit_requests",
        verbose_name=_("Order"),
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="edit_requests",
        verbose_name=_("Customer"),
    )

    description = models.TextField(verbose_name=_("Requested changes"))

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )

    designer_notes = models.TextField(blank=True, verbose_name=_("Designer notes"))

    resolved_by = models.ForeignKey(
        Employee,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="resolved_edit_requests",
        verbose_name=_("Resolved by"),
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Resolved at"))

    objects = EditRequestManager()

    class Meta:
        ordering = ("-created_at",)
        verbose_name = _("Edit request")
        verbose_name_plural = _("Edit requests")

    def __str__(self) -> str:
        return f"Edit request {self.pk} for {self.order}"


class EditComment(UUIDModel):
    """
    Conversation entry on an edit request. The first one carries the
    customer's original description.
    """

    edit_request = models.ForeignKey(
        EditRequest,
        on_delete=models.CASCADE,
        related_name="comments",
        verbose_name=_("Edit request"),
    )

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="edit_comments",
        verbose_name=_("Order"),
    )

    # customer or employee
    author_id = models.UUIDField(verbose_name=_("Author"))

    content = models.TextField(verbose_name=_("Content"))

    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ("created_at",)
        verbose_name = _("Edit comment")
        verbose_name_plural = _("Edit comments")

    def __str__(self) -> str:
        return self.content[:50]
