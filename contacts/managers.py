# contacts/managers.py
from django.db import models


class EmployeeQuerySet(models.QuerySet):
    """
    Ready-made filters by status and role.
    """

    def active(self):
        return self.filter(status="active")

    def admins(self):
        return self.active().filter(role="admin")


class EmployeeManager(models.Manager.from_queryset(EmployeeQuerySet)):
    pass
