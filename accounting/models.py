# accounting/models.py
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from contacts.models import Customer
from core.models import BaseModel
from .managers import InvoiceManager

DECIMAL_ZERO = Decimal("0.00")


class Invoice(BaseModel):
    """
    Monthly invoice covering one customer's orders.

    The invoice is the authority on payment: InvoiceReconciler copies its
    outcome onto Order.payment_status for every id in order_ids.
    """

    class Status(models.TextChoices):
        UNPAID = "unpaid", _("Unpaid")
        PAID = "paid", _("Paid")
        CANCELLED = "cancelled", _("Cancelled")

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="invoices",
        verbose_name=_("Customer"),
    )

    invoice_title = models.CharField(max_length=255, verbose_name=_("Title"))

    # "2026-10"
    month_year = models.CharField(max_length=7, blank=True, db_index=True, verbose_name=_("Month"))

    payment_link = models.URLField(null=True, blank=True, verbose_name=_("Payment link"))

    # ids (str) of orders, all belonging to `customer`
    order_ids = models.JSONField(default=list, blank=True, verbose_name=_("Orders"))

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        validators=[MinValueValidator(DECIMAL_ZERO)],
        verbose_name=_("Total"),
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.UNPAID,
        db_index=True,
        verbose_name=_("Status"),
    )

    objects = InvoiceManager()

    class Meta:
        ordering = ("-created_at",)
        verbose_name = _("Invoice")
        verbose_name_plural = _("Invoices")

    def clean(self):
        super().clean()
        if not isinstance(self.order_ids, list):
            raise ValidationError({"order_ids": _("Orders must be a list of ids.")})

    def __str__(self):
        return f"{self.invoice_title} - {self.customer}"
