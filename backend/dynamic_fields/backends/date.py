from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from . import register_backend
from .base import FieldBackend


@register_backend("Date")
class DateBackend(FieldBackend):
    value_column = "value_date"

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        if value is None or isinstance(value, date):
            return True
        try:
            date.fromisoformat(str(value))
        except ValueError:
            return False
        return True


@register_backend("DateTime")
class DateTimeBackend(FieldBackend):
    value_column = "value_date"

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        if value is None or isinstance(value, datetime):
            return True
        try:
            datetime.fromisoformat(str(value))
        except ValueError:
            return False
        return True
