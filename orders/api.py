# orders/api.py
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from atelier.engine import get_engine
from core.api import read_json, result_response, workflow_view
from core.errors import RecordNotFound
from core.results import Err, Rejection
from .patches import OrderPatch


# ============================================================
# Orders
# ============================================================

@csrf_exempt
@require_POST
@workflow_view
async def order_create(request, actor):
    """
    POST /orders/
    {
      "customer_id": "...",
      "order_type": "custom",
      "order_name": "Wedding invitations",
      "total_amount": "120.00",
      "custom_description": "..."   # optional
    }
    """
    payload = read_json(request)
    customer_id = payload.get("customer_id") or actor.actor_id

    result = await get_engine().orders.place_order(
        customer_id,
        payload.get("order_type", "custom"),
        payload.get("order_name", ""),
        payload.get("total_amount"),
        actor,
        custom_description=payload.get("custom_description", ""),
    )
    return result_response(result)


@require_GET
@workflow_view
async def order_detail(request, actor, pk):
    service = get_engine().orders
    order = await service.store.get("orders", pk)
    if order is None:
        raise RecordNotFound("orders", pk)
    if not actor.is_staff and order["customer_id"] != str(actor.actor_id):
        return result_response(Err(Rejection.FORBIDDEN))
    return JsonResponse({"ok": True, "data": await service.joined_view(order)})


@csrf_exempt
@require_POST
@workflow_view
async def order_update(request, actor, pk):
    """
    POST /orders/<id>/update/
    Body: any subset of the OrderPatch fields.
    """
    patch = OrderPatch.from_payload(read_json(request))
    result = await get_engine().orders.update_order(pk, patch, actor)
    return result_response(result)


# ============================================================
# Edit requests
# ============================================================

@csrf_exempt
@require_POST
@workflow_view
async def edit_request_create(request, actor, pk):
    payload = read_json(request)
    description = (payload.get("description") or "").strip()
    if not description:
        raise ValueError("Describe the changes you need.")

    result = await get_engine().edit_requests.create_edit_request(pk, description, actor)
    return result_response(result)


@csrf_exempt
@require_POST
@workflow_view
async def edit_request_resolve(request, actor, pk):
    payload = read_json(request)
    result = await get_engine().edit_requests.resolve_edit_request(
        pk,
        payload.get("status", ""),
        actor,
        designer_notes=payload.get("designer_notes"),
    )
    return result_response(result)


@csrf_exempt
@require_POST
@workflow_view
async def edit_request_comment(request, actor, pk):
    payload = read_json(request)
    content = (payload.get("content") or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty.")

    result = await get_engine().edit_requests.add_comment(pk, content, actor)
    return result_response(result)


# ============================================================
# Edit request history
# ============================================================

@require_GET
@workflow_view
async def edit_request_list(request, actor):
    """
    GET /orders/edit-requests/?customer_id=...
    customer_id defaults to the calling customer.
    """
    customer_id = request.GET.get("customer_id") or actor.actor_id
    result = await get_engine().edit_requests.list_for_customer(customer_id, actor)
    return result_response(result)


@require_GET
@workflow_view
async def edit_request_pending(request, actor):
    result = await get_engine().edit_requests.list_pending(actor)
    return result_response(result)


@require_GET
@workflow_view
async def order_edit_requests(request, actor, pk):
    result = await get_engine().edit_requests.list_for_order(pk, actor)
    return result_response(result)


@require_GET
@workflow_view
async def order_edit_comments(request, actor, pk):
    result = await get_engine().edit_requests.comments_for(actor, order_id=pk)
    return result_response(result)


@require_GET
@workflow_view
async def edit_request_thread(request, actor, pk):
    result = await get_engine().edit_requests.comments_for(actor, edit_request_id=pk)
    return result_response(result)
