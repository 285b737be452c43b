"""Field order maintenance after inserts and order changes."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from . import models, schemas
from .errors import DynamicFieldError, DynamicFieldStoreError, ReorderError

if TYPE_CHECKING:
    from .registry import DynamicFieldRegistry

# purpose: keep field_order a hole-tolerant ascending sequence with minimal renumbering
# inputs: registry facade, id of the definition that just claimed an order value
# outputs: ids of the definitions shifted forward by one
# status: active

_logger = logging.getLogger(__name__)


class _Ordered(Protocol):
    id: int
    field_order: int


def plan_reorder(
    fields: Sequence[_Ordered],
    pivot_id: int,
    pivot_order: int,
) -> list[_Ordered]:
    """Return the definitions that must move one position forward.

    ``fields`` must be sorted by ``(field_order, id)``. The scan stops at the
    first numbering hole that absorbs the pivot, or as soon as the pivot is the
    only occupant of its order and the next order is already taken.
    """

    seen: Counter[int] = Counter()
    to_shift: list[_Ordered] = []
    for field in fields:
        current = field.field_order
        seen[current] += 1

        if current < pivot_order:
            continue
        if current == pivot_order and field.id == pivot_id:
            continue
        if not seen[current - 1] and current != 1 and current != pivot_order:
            break
        if current - 1 == pivot_order and seen[pivot_order] == 1:
            break
        to_shift.append(field)
    return to_shift


def reorder(registry: "DynamicFieldRegistry", field_id: int) -> list[int]:
    """Shift siblings that collide with the order held by *field_id*."""

    if not field_id:
        raise ReorderError("Need ID!")

    trigger = registry.get(field_id=field_id)
    if not trigger.field_order:
        _logger.error("The field order of dynamic field %s is invalid!", trigger.name)
        raise ReorderError(f"The field order of dynamic field {trigger.name} is invalid!")

    fields = registry.list_full(valid=False)
    to_shift = plan_reorder(fields, trigger.id, trigger.field_order)

    shifted: list[int] = []
    for field in to_shift:
        try:
            registry.update(
                field_id=field.id,
                name=field.name,
                label=field.label,
                field_order=field.field_order + 1,
                field_type=field.field_type,
                object_type=field.object_type,
                config=field.config,
                valid_id=field.valid_id,
                user_id=registry.context.settings.system_user_id,
                reorder=False,
            )
        except DynamicFieldError as exc:
            _logger.error(
                "An error was detected while re ordering the field list on field %s!",
                field.name,
            )
            raise ReorderError(
                f"An error was detected while re ordering the field list on field {field.name}!"
            ) from exc
        shifted.append(field.id)

    if shifted:
        _logger.info("Reorder from field %s shifted %d definitions", field_id, len(shifted))
    return shifted


def find_duplicate_orders(registry: "DynamicFieldRegistry") -> list[int]:
    """Return every field_order value held by more than one definition."""

    try:
        rows = (
            registry.context.db.query(models.DynamicField.field_order)
            .group_by(models.DynamicField.field_order)
            .having(func.count(models.DynamicField.id) > 1)
            .order_by(models.DynamicField.field_order)
            .all()
        )
    except SQLAlchemyError as exc:
        raise DynamicFieldStoreError(f"Could not scan field orders: {exc}") from exc
    return [row[0] for row in rows]


def sweep_field_order(registry: "DynamicFieldRegistry") -> schemas.OrderSweepResult:
    """Repair double-assigned orders left behind by concurrent or aborted reorders.

    The registry cache is dropped before every pass: collisions written by
    other processes never went through it.
    """

    initial = find_duplicate_orders(registry)
    reordered = 0
    duplicates = initial
    # each pass resolves the lowest collision; bounded by the number of definitions
    limit = registry.context.db.query(func.count(models.DynamicField.id)).scalar() or 1
    while duplicates and reordered < limit:
        registry.invalidate_cache()
        order = duplicates[0]
        pivot_id = (
            registry.context.db.query(func.min(models.DynamicField.id))
            .filter(models.DynamicField.field_order == order)
            .scalar()
        )
        shifted = reorder(registry, pivot_id)
        reordered += 1
        duplicates = find_duplicate_orders(registry)
        if not shifted:
            break

    if duplicates:
        _logger.warning("Field order sweep stopped with duplicates left at %s", duplicates)
    return schemas.OrderSweepResult(
        duplicate_orders=initial,
        reordered=reordered,
        remaining=duplicates,
    )
