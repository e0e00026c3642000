# accounting/urls.py
from django.urls import path

from . import api

app_name = "accounting"

urlpatterns = [
    path("", api.invoice_create, name="invoice_create"),
    path("<uuid:pk>/update/", api.invoice_update, name="invoice_update"),
]
