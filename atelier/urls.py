from django.urls import path, include

urlpatterns = [
    path("", include("core.urls", namespace="core")),
    path("orders/", include("orders.urls", namespace="orders")),
    path("invoices/", include("accounting.urls", namespace="accounting")),
]
