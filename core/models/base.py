import uuid

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class TimeStampedModel(models.Model):
    """
    Adds created_at / updated_at fields.
    Use this for almost all models.

    Note:
    - The record store writes through QuerySet.update(), which skips
      auto_now; the store stamps updated_at itself.
    """
    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name=_("Created at"),
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Updated at"),
    )

    class Meta:
        abstract = True


class UUIDModel(models.Model):
    """
    UUID primary key.
    Rows travel as JSON-shaped dicts, so ids are rendered as strings.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    class Meta:
        abstract = True


class VersionedModel(models.Model):
    """
    Optimistic concurrency stamp.

    - Every write made through the record store bumps `version`.
    - Writers that computed their patch from a snapshot pass
      expected_version=snapshot["version"]; a mismatch raises StaleRecord.
    """
    version = models.PositiveIntegerField(
        default=1,
        verbose_name=_("Row version"),
    )

    class Meta:
        abstract = True


class BaseModel(UUIDModel, TimeStampedModel):
    """
    Base model for the workflow engine:

    - id (UUID)
    - created_at / updated_at
    """

    class Meta:
        abstract = True
