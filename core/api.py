# core/api.py
"""
JSON helpers shared by the app APIs, and the notification endpoints.

Response shape:
    {"ok": true,  "data": {...}}
    {"ok": false, "reason": "MissingDesigner", "message": "..."}
"""
import json
import logging
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from atelier.engine import get_engine
from core.actors import actor_from_request
from core.errors import RecordNotFound, StaleRecord, StorageError, user_message
from core.results import Err, Rejection

logger = logging.getLogger(__name__)


# ============================================================
# Helpers (serializer-style)
# ============================================================

REJECTION_STATUS = {
    Rejection.FORBIDDEN: 403,
}


class BadPayload(ValueError):
    pass


def read_json(request) -> dict:
    """Parse a JSON object body; raises BadPayload."""
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except ValueError:
        raise BadPayload("Request body is not valid JSON.") from None
    if not isinstance(payload, dict):
        raise BadPayload("Request body must be a JSON object.")
    return payload


def result_response(result) -> JsonResponse:
    if isinstance(result, Err):
        return JsonResponse(
            {"ok": False, "reason": result.reason.value, "message": user_message(result)},
            status=REJECTION_STATUS.get(result.reason, 400),
        )
    return JsonResponse({"ok": True, "data": result.value})


def failure_response(exc: StorageError, actor=None) -> JsonResponse:
    if isinstance(exc, RecordNotFound):
        status = 404
    elif isinstance(exc, StaleRecord):
        status = 409
    else:
        status = 503
    return JsonResponse(
        {"ok": False, "reason": type(exc).__name__, "message": user_message(exc, actor)},
        status=status,
    )


def workflow_view(view):
    """
    Resolve the actor, then map workflow failures onto JSON responses.

    The wrapped view receives (request, actor, *args, **kwargs).
    """

    @wraps(view)
    async def wrapper(request, *args, **kwargs):
        actor = actor_from_request(request)
        if actor is None:
            return JsonResponse(
                {"ok": False, "reason": "Unauthenticated", "message": "Sign in to continue."},
                status=401,
            )
        try:
            return await view(request, actor, *args, **kwargs)
        except (BadPayload, TypeError, ValueError, ValidationError) as exc:
            return JsonResponse(
                {"ok": False, "reason": "BadRequest", "message": str(exc)},
                status=400,
            )
        except StorageError as exc:
            logger.exception("%s failed for %s", view.__name__, actor.actor_id)
            return failure_response(exc, actor)

    return wrapper


# ============================================================
# Notifications
# ============================================================

@require_GET
@workflow_view
async def notification_list(request, actor):
    """
    GET /notifications/?unread=1
    """
    notifier = get_engine().notifications
    rows = await notifier.list_for(actor.actor_id, unread_only=bool(request.GET.get("unread")))

    return JsonResponse(
        {
            "ok": True,
            "data": {
                "results": rows,
                "unread_count": await notifier.unread_count(actor.actor_id),
            },
        }
    )


@csrf_exempt
@require_POST
@workflow_view
async def notification_mark_read(request, actor, pk):
    notifier = get_engine().notifications
    notification = await notifier.store.get("notifications", pk)
    if notification is None or notification["recipient_id"] != str(actor.actor_id):
        raise RecordNotFound("notifications", pk)

    return JsonResponse({"ok": True, "data": await notifier.mark_read(pk)})


@csrf_exempt
@require_POST
@workflow_view
async def notification_mark_all_read(request, actor):
    updated = await get_engine().notifications.mark_all_read(actor.actor_id)
    return JsonResponse({"ok": True, "data": {"updated": updated}})
