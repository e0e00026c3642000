# orders/urls.py
from django.urls import path

from . import api

app_name = "orders"

urlpatterns = [
    path("", api.order_create, name="order_create"),
    path("<uuid:pk>/", api.order_detail, name="order_detail"),
    path("<uuid:pk>/update/", api.order_update, name="order_update"),

    # Edit requests
    path("<uuid:pk>/edit-requests/", api.edit_request_create, name="edit_request_create"),
    path("<uuid:pk>/edit-requests/history/", api.order_edit_requests, name="order_edit_requests"),
    path("<uuid:pk>/edit-comments/", api.order_edit_comments, name="order_edit_comments"),
    path("edit-requests/", api.edit_request_list, name="edit_request_list"),
    path("edit-requests/pending/", api.edit_request_pending, name="edit_request_pending"),
    path(
        "edit-requests/<uuid:pk>/resolve/",
        api.edit_request_resolve,
        name="edit_request_resolve",
    ),
    path(
        "edit-requests/<uuid:pk>/comments/",
        api.edit_request_comment,
        name="edit_request_comment",
    ),
    path(
        "edit-requests/<uuid:pk>/thread/",
        api.edit_request_thread,
        name="edit_request_thread",
    ),
]
