# core/store.py
"""
Generic record store used by the workflow engine.

Workflows only see named collections of JSON-shaped rows; this module maps
them onto Django models and the async ORM.
"""
from __future__ import annotations

import functools
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Type

from asgiref.sync import sync_to_async
from django.apps import apps
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, models, transaction
from django.db.models import F
from django.utils import timezone

from core.errors import RecordNotFound, StaleRecord, StorageError, StoreUnavailable, UnknownCollection
from core.realtime import INSERT, UPDATE, ChangeEvent, ChangeFilter, ChangeSubscription, publish_change

Row = Dict[str, Any]


class RecordStore(Protocol):
    async def get(self, collection: str, record_id: Any) -> Optional[Row]: ...

    async def update(
        self,
        collection: str,
        record_id: Any,
        patch: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Row: ...

    async def insert(self, collection: str, rows: Iterable[Mapping[str, Any]]) -> List[Row]: ...

    async def bulk_update_where(
        self,
        collection: str,
        field: str,
        values: Iterable[Any],
        patch: Mapping[str, Any],
    ) -> int: ...

    async def count_where(self, collection: str, filters: Mapping[str, Any]) -> int: ...

    async def select(
        self,
        collection: str,
        filters: Mapping[str, Any],
        scope: Optional[str] = None,
    ) -> List[Row]: ...

    async def broadcast(
        self,
        collection: str,
        field: str,
        values: Iterable[Any],
        row: Mapping[str, Any],
    ) -> int: ...

    async def delete(self, collection: str, record_id: Any) -> bool: ...

    def subscribe_changes(
        self,
        collection: str,
        change_filter: ChangeFilter,
        on_event: Callable[[ChangeEvent], None],
    ) -> ChangeSubscription: ...


# ============================================================
# Row helpers
# ============================================================

def _json_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, list):
        return [_json_value(item) for item in value]
    return value


def to_row(source: Any) -> Row:
    """
    Render a model instance or a .values() dict as a JSON-shaped row.
    FK columns keep their attname (customer_id, ...).
    """
    if isinstance(source, models.Model):
        source = {f.attname: getattr(source, f.attname) for f in source._meta.concrete_fields}
    return {key: _json_value(value) for key, value in source.items()}


def collection_models(mapping: Optional[Mapping[str, Any]] = None) -> Dict[str, Type[models.Model]]:
    """
    Resolve {collection: "app_label.Model" | Model} into model classes.
    Defaults to settings.ATELIER["RECORD_STORE_COLLECTIONS"].
    """
    if mapping is None:
        mapping = settings.ATELIER["RECORD_STORE_COLLECTIONS"]
    resolved: Dict[str, Type[models.Model]] = {}
    for collection, model in mapping.items():
        resolved[collection] = apps.get_model(model) if isinstance(model, str) else model
    return resolved


def _has_field(model: Type[models.Model], name: str) -> bool:
    return any(f.name == name for f in model._meta.concrete_fields)


def _storage_call(func):
    """Translate driver errors into StoreUnavailable."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except StorageError:
            raise
        except DatabaseError as exc:
            raise StoreUnavailable(str(exc)) from exc

    return wrapper


def _in_savepoint(func, *args, **kwargs):
    with transaction.atomic():
        return func(*args, **kwargs)


async def _write(func, *args, **kwargs):
    """
    Run one ORM write in its own savepoint, so a failed best-effort write
    does not poison an enclosing transaction.
    """
    return await sync_to_async(_in_savepoint)(func, *args, **kwargs)


# ============================================================
# Django implementation
# ============================================================

class DjangoRecordStore:
    """
    RecordStore over the Django ORM (async API).

    - update() is a single-row QuerySet.update(); it stamps updated_at and bumps
      `version` on versioned models, optionally guarded by expected_version.
    - insert()/broadcast() use bulk_create (one statement).
    - Every insert/update is published to the realtime change feed; deletes are
      published by the post_delete bridge.
    """

    def __init__(self, collections: Optional[Mapping[str, Any]] = None) -> None:
        self._collections = collection_models(collections)

    @property
    def collections(self) -> List[str]:
        return sorted(self._collections)

    def model_for(self, collection: str) -> Type[models.Model]:
        try:
            return self._collections[collection]
        except KeyError:
            raise UnknownCollection(collection) from None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @_storage_call
    async def get(self, collection: str, record_id: Any) -> Optional[Row]:
        model = self.model_for(collection)
        if record_id in (None, ""):
            return None
        try:
            values = await model.objects.filter(pk=record_id).values().afirst()
        except (ValidationError, ValueError):
            # malformed id (e.g. not a UUID)
            return None
        return to_row(values) if values is not None else None

    @_storage_call
    async def select(
        self,
        collection: str,
        filters: Mapping[str, Any],
        scope: Optional[str] = None,
    ) -> List[Row]:
        """
        Rows matching filters, in the model's default order.

        scope names a no-argument queryset method on the model's manager
        (e.g. "admins", "unread", "pending") applied before the filters.
        """
        model = self.model_for(collection)
        qs = getattr(model.objects, scope)() if scope else model.objects.all()
        qs = qs.filter(**filters).values()
        return [to_row(values) async for values in qs]

    @_storage_call
    async def count_where(self, collection: str, filters: Mapping[str, Any]) -> int:
        model = self.model_for(collection)
        return await model.objects.filter(**filters).acount()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _write_stamps(self, model: Type[models.Model]) -> Dict[str, Any]:
        stamps: Dict[str, Any] = {}
        if _has_field(model, "updated_at"):
            stamps["updated_at"] = timezone.now()
        if _has_field(model, "version"):
            stamps["version"] = F("version") + 1
        return stamps

    @_storage_call
    async def update(
        self,
        collection: str,
        record_id: Any,
        patch: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Row:
        model = self.model_for(collection)
        qs = model.objects.filter(pk=record_id)
        if expected_version is not None:
            qs = qs.filter(version=expected_version)

        fields = dict(patch)
        fields.update(self._write_stamps(model))

        updated = await _write(qs.update, **fields)
        if updated == 0:
            if expected_version is not None and await model.objects.filter(pk=record_id).aexists():
                raise StaleRecord(collection, record_id, expected_version)
            raise RecordNotFound(collection, record_id)

        row = await self.get(collection, record_id)
        publish_change(collection, UPDATE, new=row)
        return row

    @_storage_call
    async def insert(self, collection: str, rows: Iterable[Mapping[str, Any]]) -> List[Row]:
        model = self.model_for(collection)
        instances = [model(**dict(row)) for row in rows]
        if not instances:
            return []

        created = await _write(model.objects.bulk_create, instances)
        result = [to_row(instance) for instance in created]
        for row in result:
            publish_change(collection, INSERT, new=row)
        return result

    async def broadcast(
        self,
        collection: str,
        field: str,
        values: Iterable[Any],
        row: Mapping[str, Any],
    ) -> int:
        """
        Insert one copy of `row` per value of `field`, in one statement
        (e.g. the same notification to every admin).
        """
        rows = [{**row, field: value} for value in values]
        return len(await self.insert(collection, rows))

    @_storage_call
    async def bulk_update_where(
        self,
        collection: str,
        field: str,
        values: Iterable[Any],
        patch: Mapping[str, Any],
    ) -> int:
        model = self.model_for(collection)
        values = list(values)
        if not values:
            return 0

        lookup = {f"{field}__in": values}
        fields = dict(patch)
        fields.update(self._write_stamps(model))

        updated = await _write(model.objects.filter(**lookup).update, **fields)
        if updated:
            async for changed in model.objects.filter(**lookup).values():
                publish_change(collection, UPDATE, new=to_row(changed))
        return updated

    @_storage_call
    async def delete(self, collection: str, record_id: Any) -> bool:
        model = self.model_for(collection)
        deleted, _ = await model.objects.filter(pk=record_id).adelete()
        return deleted > 0

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------
    def subscribe_changes(
        self,
        collection: str,
        change_filter: ChangeFilter,
        on_event: Callable[[ChangeEvent], None],
    ) -> ChangeSubscription:
        self.model_for(collection)
        return ChangeSubscription(collection, change_filter, on_event)
