# orders/managers.py
from django.db import models


# ===================================================================
# Orders
# ===================================================================

class OrderQuerySet(models.QuerySet):
    """
    QuerySet for orders (dashboards, invoice pickers).
    """

    def for_customer(self, customer_id):
        return self.filter(customer_id=customer_id)

    def paid(self):
        return self.filter(payment_status=self.model.PaymentStatus.PAID)


class OrderManager(models.Manager.from_queryset(OrderQuerySet)):
    pass


# ===================================================================
# Edit requests
# ===================================================================

class EditRequestQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=self.model.Status.PENDING)


class EditRequestManager(models.Manager.from_queryset(EditRequestQuerySet)):
    pass
