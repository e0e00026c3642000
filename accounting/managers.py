# accounting/managers.py
from django.db import models


class InvoiceQuerySet(models.QuerySet):
    """
    Filters for invoice lists.
    """

    def for_customer(self, customer_id):
        return self.filter(customer_id=customer_id)

    def paid(self):
        return self.filter(status=self.model.Status.PAID)


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    pass
