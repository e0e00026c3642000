# core/services/numbering.py
from __future__ import annotations

from typing import Any

from asgiref.sync import sync_to_async
from django.conf import settings
from django.utils import timezone

from core.models import NumberSequence


def generate_number(key: str, pattern: str | None = None, **context: Any) -> str:
    """
    Generate a human-friendly number, one sequence per key and year.

    Usage:
        order_number = generate_number("orders.Order")   # "ORD-2026-0001"
    """
    pattern = pattern or settings.ATELIER["ORDER_NUMBER_PATTERN"]
    now = timezone.now()

    seq = NumberSequence.objects.next_value(key, period=str(now.year))

    context.setdefault("year", now.year)
    context.setdefault("month", now.month)
    context["seq"] = seq

    return pattern.format(**context)


agenerate_number = sync_to_async(generate_number)
