# accounting/api.py
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from atelier.engine import get_engine
from core.api import read_json, result_response, workflow_view
from .patches import InvoicePatch


@csrf_exempt
@require_POST
@workflow_view
async def invoice_create(request, actor):
    """
    POST /invoices/
    {
      "customer_id": "...",
      "invoice_title": "October 2026",
      "month_year": "2026-10",
      "order_ids": ["...", "..."],
      "total_amount": "240.00",
      "payment_link": null
    }
    """
    payload = read_json(request)
    order_ids = payload.get("order_ids") or []
    if not isinstance(order_ids, list):
        raise ValueError("order_ids must be a list.")

    result = await get_engine().invoices.create_invoice(
        payload.get("customer_id"),
        payload.get("invoice_title", ""),
        payload.get("month_year", ""),
        order_ids,
        payload.get("total_amount", "0"),
        payment_link=payload.get("payment_link"),
        actor=actor,
    )
    return result_response(result)


@csrf_exempt
@require_POST
@workflow_view
async def invoice_update(request, actor, pk):
    """
    POST /invoices/<id>/update/
    Body: any subset of the InvoicePatch fields.
    """
    patch = InvoicePatch.from_payload(read_json(request))
    result = await get_engine().invoices.update_invoice(pk, patch, actor)
    return result_response(result)
