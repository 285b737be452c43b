"""Dynamic field definition registry.

The registry is the only writer of the ``dynamic_field`` table. Every write
clears the whole ``DynamicField`` cache namespace before returning, so reads
that go through :meth:`DynamicFieldRegistry.get`, :meth:`~DynamicFieldRegistry.list`
and :meth:`~DynamicFieldRegistry.list_full` never observe a stale entry written
by this process.

Order maintenance runs after ``add`` and after an ``update`` that changed the
order. A failing reorder is logged and does not undo the primary write.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import models, ordering
from .backends.base import FieldBackend
from .context import RegistryContext
from .errors import (
    DuplicateDynamicFieldError,
    DynamicFieldError,
    DynamicFieldNotFoundError,
    DynamicFieldStoreError,
    DynamicFieldValidationError,
)
from .schemas import DynamicFieldOut, ListResultType

# purpose: public facade for adding, reading, listing and removing dynamic field definitions
# inputs: RegistryContext (session, cache, valid lookup, settings, backend resolver)
# outputs: DynamicFieldOut records, id lists, id -> name mappings
# status: active

_logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "DynamicField"

_NAME_PATTERN = re.compile(r"[A-Za-z0-9]+")
_ORDER_PATTERN = re.compile(r"[0-9]+")
# upper bound of the INTEGER field_order column
MAX_FIELD_ORDER = 2**31 - 1

_ADD_FIELDS = (
    "name",
    "label",
    "field_order",
    "field_type",
    "object_type",
    "config",
    "valid_id",
    "user_id",
)


def _fail(message: str, exc_type: type[DynamicFieldError] = DynamicFieldValidationError) -> DynamicFieldError:
    _logger.error(message)
    return exc_type(message)


def _check_config_keys(value: Any, path: str = "config") -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise _fail(f"Not valid key {key!r} in {path}: mapping keys must be strings!")
            _check_config_keys(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_config_keys(item, f"{path}[{index}]")


def dump_config(config: Any) -> str:
    """Serialize a field config for the ``config`` column.

    Only JSON documents with string mapping keys are accepted, so that
    :func:`load_config` gives back an equal value.
    """

    _check_config_keys(config)
    try:
        return json.dumps(config, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise _fail(f"Not valid config: {exc}!") from exc


def load_config(raw: str | None) -> Any:
    if raw is None or raw == "":
        return None
    return json.loads(raw)


def _is_missing(key: str, value: Any) -> bool:
    if key == "config":
        return value is None
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    return value == 0


class DynamicFieldRegistry:
    """Facade over the dynamic field store, its cache and the backend resolver."""

    def __init__(self, context: RegistryContext) -> None:
        self.context = context

    # -- validation -------------------------------------------------------

    def _check_needed(self, params: Mapping[str, Any], keys: tuple[str, ...]) -> None:
        for key in keys:
            if _is_missing(key, params.get(key)):
                raise _fail(f"Need {key}!")

    def _check_structure(self, name: str, field_order: Any, field_type: str) -> int:
        if not isinstance(name, str) or not _NAME_PATTERN.fullmatch(name):
            raise _fail(f"Not valid letters on name:{name}!")
        if isinstance(field_order, bool) or not _ORDER_PATTERN.fullmatch(str(field_order)):
            raise _fail(f"Not valid number on field_order:{field_order}!")
        if int(field_order) == 0:
            raise _fail("Need field_order!")
        if int(field_order) > MAX_FIELD_ORDER:
            raise _fail(f"Not valid number on field_order:{field_order}, maximum is {MAX_FIELD_ORDER}!")
        if field_type not in self.context.resolver.field_types():
            raise _fail(f"No backend registered for field_type:{field_type}!")
        return int(field_order)

    # -- cache ------------------------------------------------------------

    def _cache_get(self, key: str) -> Any | None:
        return self.context.cache.get(CACHE_NAMESPACE, key)

    def _cache_set(self, key: str, value: Any) -> None:
        self.context.cache.set(CACHE_NAMESPACE, key, value, self.context.settings.cache_ttl)

    def invalidate_cache(self) -> None:
        """Drop every cached lookup, list and listing of this registry."""

        self.context.cache.invalidate(CACHE_NAMESPACE)

    # -- store ------------------------------------------------------------

    def _rollback(self, message: str, exc: Exception) -> DynamicFieldError:
        self.context.db.rollback()
        if isinstance(exc, IntegrityError):
            return _fail(message, DuplicateDynamicFieldError)
        return _fail(f"{message} ({exc})", DynamicFieldStoreError)

    @staticmethod
    def _to_record(row: models.DynamicField) -> DynamicFieldOut:
        return DynamicFieldOut(
            id=row.id,
            name=row.name,
            label=row.label,
            field_order=row.field_order,
            field_type=row.field_type,
            object_type=row.object_type,
            config=load_config(row.config),
            valid_id=row.valid_id,
            create_time=row.create_time,
            change_time=row.change_time,
        )

    # -- public interface -------------------------------------------------

    def add(
        self,
        *,
        name: str,
        label: str,
        field_order: int | str,
        field_type: str,
        object_type: str,
        config: Any,
        valid_id: int,
        user_id: int,
    ) -> int:
        """Store a new definition and return its id."""

        params = {
            "name": name,
            "label": label,
            "field_order": field_order,
            "field_type": field_type,
            "object_type": object_type,
            "config": config,
            "valid_id": valid_id,
            "user_id": user_id,
        }
        self._check_needed(params, _ADD_FIELDS)
        order = self._check_structure(name, field_order, field_type)
        serialized_config = dump_config(config)

        db = self.context.db
        try:
            existing = db.query(models.DynamicField.id).filter(models.DynamicField.name == name).first()
        except SQLAlchemyError as exc:
            raise self._rollback("Could not check dynamic field name", exc)
        if existing:
            raise _fail(f"A dynamic field with the name {name} already exists!", DuplicateDynamicFieldError)

        row = models.DynamicField(
            name=name,
            label=label,
            field_order=order,
            field_type=field_type,
            object_type=object_type,
            config=serialized_config,
            valid_id=valid_id,
            create_by=user_id,
            change_by=user_id,
        )
        db.add(row)
        try:
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as exc:
            raise self._rollback(f"A dynamic field with the name {name} already exists!", exc)

        if not row.id:
            raise _fail(f"Could not get the id of the new dynamic field {name}!", DynamicFieldStoreError)

        self.invalidate_cache()

        try:
            ordering.reorder(self, row.id)
        except DynamicFieldError as exc:
            _logger.error("Reorder after adding dynamic field %s failed: %s", name, exc)

        return row.id

    def get(self, *, field_id: int | None = None, name: str | None = None) -> DynamicFieldOut:
        """Return one definition looked up by id or by name."""

        if not field_id and not name:
            raise _fail("Need field_id or name!")
        if field_id and name:
            raise _fail("Need field_id or name, not both!")

        if field_id:
            cache_key = f"DynamicFieldGet::ID::{field_id}"
        else:
            cache_key = f"DynamicFieldGet::Name::{name}"

        cached = self._cache_get(cache_key)
        if cached is not None:
            return DynamicFieldOut.model_validate(cached)

        query = self.context.db.query(models.DynamicField)
        if field_id:
            query = query.filter(models.DynamicField.id == field_id)
        else:
            query = query.filter(models.DynamicField.name == name)
        try:
            row = query.first()
        except SQLAlchemyError as exc:
            raise self._rollback("Could not read dynamic field", exc)
        if row is None:
            raise _fail(
                f"Dynamic field {field_id or name} not found!",
                DynamicFieldNotFoundError,
            )

        record = self._to_record(row)
        self._cache_set(cache_key, record.model_dump(mode="json"))
        return record

    def update(
        self,
        *,
        field_id: int,
        name: str,
        label: str,
        field_order: int | str,
        field_type: str,
        object_type: str,
        config: Any,
        valid_id: int,
        user_id: int,
        reorder: bool = True,
    ) -> bool:
        """Overwrite a definition; reorders siblings when its order moved."""

        params = {
            "field_id": field_id,
            "name": name,
            "label": label,
            "field_order": field_order,
            "field_type": field_type,
            "object_type": object_type,
            "config": config,
            "valid_id": valid_id,
            "user_id": user_id,
        }
        self._check_needed(params, ("field_id",) + _ADD_FIELDS)
        order = self._check_structure(name, field_order, field_type)
        serialized_config = dump_config(config)

        previous = self.get(field_id=field_id)
        changed_order = previous.field_order != order

        db = self.context.db
        try:
            updated = (
                db.query(models.DynamicField)
                .filter(models.DynamicField.id == field_id)
                .update(
                    {
                        models.DynamicField.name: name,
                        models.DynamicField.label: label,
                        models.DynamicField.field_order: order,
                        models.DynamicField.field_type: field_type,
                        models.DynamicField.object_type: object_type,
                        models.DynamicField.config: serialized_config,
                        models.DynamicField.valid_id: valid_id,
                        models.DynamicField.change_time: func.current_timestamp(),
                        models.DynamicField.change_by: user_id,
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            raise self._rollback(f"A dynamic field with the name {name} already exists!", exc)

        self.invalidate_cache()

        if not updated:
            raise _fail(f"Dynamic field {field_id} not found!", DynamicFieldNotFoundError)

        if reorder and changed_order:
            try:
                ordering.reorder(self, field_id)
            except DynamicFieldError as exc:
                _logger.error("Reorder after updating dynamic field %s failed: %s", name, exc)

        return True

    def delete(self, *, field_id: int, user_id: int) -> bool:
        """Remove a definition together with every value stored for it."""

        self._check_needed({"field_id": field_id, "user_id": user_id}, ("field_id", "user_id"))

        # missing definitions are an error, not a no-op
        self.get(field_id=field_id)

        db = self.context.db
        try:
            db.query(models.DynamicFieldValue).filter(
                models.DynamicFieldValue.field_id == field_id
            ).delete(synchronize_session=False)
            db.query(models.DynamicField).filter(
                models.DynamicField.id == field_id
            ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as exc:
            raise self._rollback(f"Could not delete dynamic field {field_id}", exc)

        self.invalidate_cache()
        _logger.info("Dynamic field %s deleted by user %s", field_id, user_id)
        return True

    def list(
        self,
        *,
        valid: bool | int | None = True,
        object_type: str | None = None,
        result_type: ListResultType | str = ListResultType.ARRAY,
    ) -> list[int] | dict[int, str]:
        """Return ids (``array``) or an id -> name mapping (``hash``) ordered by field order."""

        only_valid = valid is None or bool(valid)
        object_type = object_type or "All"
        hash_result = str(getattr(result_type, "value", result_type)).lower() == ListResultType.HASH.value
        result_key = ListResultType.HASH.value if hash_result else ListResultType.ARRAY.value

        cache_key = (
            f"DynamicFieldList::Valid::{int(only_valid)}"
            f"::ObjectType::{object_type}::ResultType::{result_key}"
        )
        cached = self._cache_get(cache_key)
        if cached is not None:
            if hash_result:
                return {int(key): value for key, value in cached.items()}
            return cached

        rows = self._ordered_rows(only_valid, object_type)
        if hash_result:
            data: list[int] | dict[int, str] = {row_id: row_name for row_id, row_name in rows}
        else:
            data = [row_id for row_id, _ in rows]

        self._cache_set(cache_key, data)
        return data

    def list_full(
        self,
        *,
        valid: bool | int | None = True,
        object_type: str | None = None,
    ) -> list[DynamicFieldOut]:
        """Return complete definitions in the same order as :meth:`list`."""

        only_valid = valid is None or bool(valid)
        object_type = object_type or "All"

        cache_key = f"DynamicFieldListGet::Valid::{int(only_valid)}::ObjectType::{object_type}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return [DynamicFieldOut.model_validate(item) for item in cached]

        records = [
            self.get(field_id=row_id)
            for row_id, _ in self._ordered_rows(only_valid, object_type)
        ]
        self._cache_set(cache_key, [record.model_dump(mode="json") for record in records])
        return records

    def backend_instance(self, field_config: Any) -> FieldBackend:
        """Return the shared backend handling ``field_config['field_type']``."""

        return self.context.resolver.get(field_config)

    def _ordered_rows(self, only_valid: bool, object_type: str) -> list[tuple[int, str]]:
        query = self.context.db.query(models.DynamicField.id, models.DynamicField.name)
        if only_valid:
            query = query.filter(models.DynamicField.valid_id.in_(self.context.valid.active_ids()))
        if object_type != "All":
            query = query.filter(models.DynamicField.object_type == object_type)
        query = query.order_by(models.DynamicField.field_order, models.DynamicField.id)
        try:
            return [(row[0], row[1]) for row in query.all()]
        except SQLAlchemyError as exc:
            raise self._rollback("Could not list dynamic fields", exc)
