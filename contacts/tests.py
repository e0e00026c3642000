# contacts/tests.py
from django.test import TestCase

from core.store import DjangoRecordStore
from .models import AccountStatus, Customer, Employee


class DirectoryManagerTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = Employee.objects.create(full_name="Amal Admin", role=Employee.Role.ADMIN)
        cls.disabled_admin = Employee.objects.create(
            full_name="Old Admin",
            role=Employee.Role.ADMIN,
            status=AccountStatus.DISABLED,
        )
        cls.rep = Employee.objects.create(full_name="Salim Rep", role=Employee.Role.SALES_REP)
        cls.designer = Employee.objects.create(full_name="Dana Designer", role=Employee.Role.DESIGNER)

        cls.customer = Customer.objects.create(full_name="Huda Customer", assigned_sales_rep=cls.rep)

    def test_admins_skip_disabled_accounts(self):
        self.assertQuerySetEqual(Employee.objects.admins(), [self.admin])
        self.assertEqual(Employee.objects.active().count(), 3)

    async def test_store_scope_uses_manager_filters(self):
        rows = await DjangoRecordStore().select("employees", {}, scope="admins")
        self.assertEqual([row["full_name"] for row in rows], ["Amal Admin"])

    def test_str(self):
        self.assertEqual(str(self.rep), "Salim Rep (Sales representative)")
        self.assertEqual(str(self.customer), "Huda Customer")
