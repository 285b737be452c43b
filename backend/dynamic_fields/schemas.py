from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ListResultType(str, Enum):
    ARRAY = "array"
    HASH = "hash"


class DynamicFieldBase(BaseModel):
    name: str
    label: str
    field_order: int
    field_type: str
    object_type: str
    config: Any = Field(default_factory=dict)
    valid_id: int = 1


class DynamicFieldCreate(DynamicFieldBase):
    pass


class DynamicFieldUpdate(DynamicFieldBase):
    reorder: bool = True


class DynamicFieldOut(DynamicFieldBase):
    id: int
    create_time: Optional[datetime] = None
    change_time: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BackendDescription(BaseModel):
    field_type: str
    backend: str
    value_column: str


class OrderSweepResult(BaseModel):
    duplicate_orders: list[int]
    reordered: int
    # orders still held by more than one definition after the sweep
    remaining: list[int] = Field(default_factory=list)
