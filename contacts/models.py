# contacts/models.py
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel
from .managers import EmployeeManager


class AccountStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    DISABLED = "disabled", _("Disabled")


class Employee(BaseModel):
    """
    Staff member: admin, sales representative or designer.
    Used by the workflow engine to resolve assignees and "all admins".
    """

    class Role(models.TextChoices):
        ADMIN = "admin", _("Admin")
        SALES_REP = "sales_rep", _("Sales representative")
        DESIGNER = "designer", _("Designer")

    full_name = models.CharField(
        max_length=255,
        verbose_name=_("Full name"),
    )

    email = models.EmailField(
        blank=True,
        verbose_name=_("Email"),
    )

    phone = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_("Phone"),
    )

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        db_index=True,
        verbose_name=_("Role"),
    )

    status = models.CharField(
        max_length=20,
        choices=AccountStatus.choices,
        default=AccountStatus.ACTIVE,
        verbose_name=_("Status"),
    )

    objects = EmployeeManager()

    class Meta:
        ordering = ("full_name",)
        verbose_name = _("Employee")
        verbose_name_plural = _("Employees")

    def __str__(self) -> str:
        return f"{self.full_name} ({self.get_role_display()})"


class Customer(BaseModel):
    """
    Customer account. May have a default sales representative, which new
    orders inherit.
    """

    full_name = models.CharField(
        max_length=255,
        verbose_name=_("Full name"),
    )

    email = models.EmailField(
        blank=True,
        verbose_name=_("Email"),
    )

    phone = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_("Phone"),
    )

    company_name = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_("Company name"),
    )

    status = models.CharField(
        max_length=20,
        choices=AccountStatus.choices,
        default=AccountStatus.ACTIVE,
        verbose_name=_("Status"),
    )

    assigned_sales_rep = models.ForeignKey(
        Employee,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="customers",
        limit_choices_to={"role": Employee.Role.SALES_REP},
        verbose_name=_("Assigned sales representative"),
    )

    class Meta:
        ordering = ("full_name",)
        verbose_name = _("Customer")
        verbose_name_plural = _("Customers")

    def __str__(self) -> str:
        return self.full_name
