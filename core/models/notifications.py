# core/models/notifications.py

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .base import UUIDModel


class NotificationQuerySet(models.QuerySet):
    def for_recipient(self, recipient_id):
        """Return notifications for a specific actor."""
        return self.filter(recipient_id=recipient_id)

    def unread(self):
        """Return unread notifications."""
        return self.filter(read=False)


class NotificationManager(models.Manager.from_queryset(NotificationQuerySet)):
    pass


class Notification(UUIDModel):
    """
    In-app notification for one actor (customer or employee).

    - recipient_id: actor who receives the notification
    - type: what the notification is about (order / user / invoice / ...)
    - message: rendered text
    - read: the only field that may change after insert
    """

    class Type(models.TextChoices):
        ORDER = "order", _("Order")
        USER = "user", _("User")
        INVOICE = "invoice", _("Invoice")
        STOCK_DESIGN = "stock_design", _("Stock design")
        SYSTEM = "system", _("System")

    # Customers and employees live in different tables, so this is not a FK
    recipient_id = models.UUIDField(
        db_index=True,
        verbose_name=_("Recipient"),
    )

    type = models.CharField(
        max_length=20,
        choices=Type.choices,
        default=Type.SYSTEM,
        verbose_name=_("Type"),
    )

    message = models.TextField(
        verbose_name=_("Message"),
    )

    read = models.BooleanField(
        default=False,
        verbose_name=_("Is read?"),
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name=_("Created at"),
    )

    objects = NotificationManager()

    class Meta:
        verbose_name = _("Notification")
        verbose_name_plural = _("Notifications")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient_id", "read"]),
        ]

    def __str__(self) -> str:
        return f"{self.recipient_id} – {self.message[:50]}"
