# core/actors.py
from __future__ import annotations

from dataclasses import dataclass

from django.db import models
from django.utils.translation import gettext_lazy as _


class Role(models.TextChoices):
    ADMIN = "admin", _("Admin")
    SALES_REP = "sales_rep", _("Sales representative")
    DESIGNER = "designer", _("Designer")
    CUSTOMER = "customer", _("Customer")


STAFF_ROLES = frozenset({Role.ADMIN, Role.SALES_REP, Role.DESIGNER})


@dataclass(frozen=True)
class ActorContext:
    """
    Who is performing a workflow operation.
    Produced by the session-lookup collaborator; the engine trusts it as given.
    """

    actor_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


ACTOR_ID_HEADER = "HTTP_X_ACTOR_ID"
ACTOR_ROLE_HEADER = "HTTP_X_ACTOR_ROLE"


def actor_from_request(request) -> ActorContext | None:
    """
    Session-lookup seam for the JSON views.

    Authentication is handled upstream (gateway / session middleware), which
    forwards the resolved actor as X-Actor-Id / X-Actor-Role headers.
    """
    actor_id = request.META.get(ACTOR_ID_HEADER, "").strip()
    raw_role = request.META.get(ACTOR_ROLE_HEADER, "").strip()
    if not actor_id or raw_role not in Role.values:
        return None
    return ActorContext(actor_id=actor_id, role=Role(raw_role))
