# core/models/sequences.py
from django.db import models, transaction
from django.utils.translation import gettext_lazy as _


class NumberSequenceManager(models.Manager):
    def next_value(self, key: str, period: str = "") -> int:
        """
        Claim the next counter value for key+period.
        The row is locked for the duration of the claim.
        """
        with transaction.atomic():
            sequence, _created = self.select_for_update().get_or_create(key=key, period=period)
            sequence.last_value = models.F("last_value") + 1
            sequence.save(update_fields=["last_value"])
            sequence.refresh_from_db(fields=["last_value"])
            return sequence.last_value


class NumberSequence(models.Model):
    """
    Per-key, per-period counter behind human-readable numbers
    such as order numbers ("orders.Order" / "2026" -> ORD-2026-0042).
    """

    key = models.CharField(max_length=100, verbose_name=_("Key"))
    period = models.CharField(max_length=16, blank=True, verbose_name=_("Period"))
    last_value = models.PositiveIntegerField(default=0, verbose_name=_("Last value"))

    objects = NumberSequenceManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("key", "period"), name="unique_sequence_per_period"),
        ]
        verbose_name = _("Number sequence")
        verbose_name_plural = _("Number sequences")

    def __str__(self) -> str:
        return f"{self.key}/{self.period or '-'}: {self.last_value}"
