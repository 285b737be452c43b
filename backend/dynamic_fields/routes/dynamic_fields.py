from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..auth import get_current_actor
from ..context import build_context
from ..database import get_db
from ..errors import (
    BackendError,
    DuplicateDynamicFieldError,
    DynamicFieldError,
    DynamicFieldNotFoundError,
    DynamicFieldStoreError,
    DynamicFieldValidationError,
)
from ..registry import DynamicFieldRegistry
from .. import schemas

router = APIRouter(prefix="/api/dynamic-fields", tags=["dynamic-fields"])


def get_registry(db: Session = Depends(get_db)) -> DynamicFieldRegistry:
    return DynamicFieldRegistry(build_context(db))


def _http_error(exc: DynamicFieldError) -> HTTPException:
    if isinstance(exc, DynamicFieldNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicateDynamicFieldError):
        return HTTPException(status_code=400, detail="Dynamic field already exists")
    if isinstance(exc, (DynamicFieldValidationError, BackendError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, DynamicFieldStoreError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.post("", response_model=schemas.DynamicFieldOut, status_code=201)
def create_dynamic_field(
    field: schemas.DynamicFieldCreate,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        field_id = registry.add(**field.model_dump(), user_id=actor_id)
        return registry.get(field_id=field_id)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.get("", response_model=Union[List[int], Dict[int, str]])
def list_dynamic_fields(
    valid: bool = True,
    object_type: Optional[str] = None,
    result_type: schemas.ListResultType = schemas.ListResultType.ARRAY,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        return registry.list(valid=valid, object_type=object_type, result_type=result_type)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.get("/full", response_model=List[schemas.DynamicFieldOut])
def list_dynamic_fields_full(
    valid: bool = True,
    object_type: Optional[str] = None,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        return registry.list_full(valid=valid, object_type=object_type)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.get("/by-name/{name}", response_model=schemas.DynamicFieldOut)
def get_dynamic_field_by_name(
    name: str,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        return registry.get(name=name)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.get("/{field_id}", response_model=schemas.DynamicFieldOut)
def get_dynamic_field(
    field_id: int,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        return registry.get(field_id=field_id)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.put("/{field_id}", response_model=schemas.DynamicFieldOut)
def update_dynamic_field(
    field_id: int,
    field: schemas.DynamicFieldUpdate,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        registry.update(field_id=field_id, **field.model_dump(), user_id=actor_id)
        return registry.get(field_id=field_id)
    except DynamicFieldError as exc:
        raise _http_error(exc)


@router.delete("/{field_id}", status_code=204)
def delete_dynamic_field(
    field_id: int,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        registry.delete(field_id=field_id, user_id=actor_id)
    except DynamicFieldError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


@router.get("/{field_id}/backend", response_model=schemas.BackendDescription)
def describe_dynamic_field_backend(
    field_id: int,
    registry: DynamicFieldRegistry = Depends(get_registry),
    actor_id: int = Depends(get_current_actor),
):
    try:
        field = registry.get(field_id=field_id)
        return registry.backend_instance(field).describe()
    except DynamicFieldError as exc:
        raise _http_error(exc)
