# core/urls.py
from django.urls import path

from core import api

app_name = "core"

urlpatterns = [
    path(
        "notifications/",
        api.notification_list,
        name="notification_list",
    ),
    path(
        "notifications/mark-all-read/",
        api.notification_mark_all_read,
        name="notification_mark_all_read",
    ),
    path(
        "notifications/<uuid:pk>/read/",
        api.notification_mark_read,
        name="notification_mark_read",
    ),
]
