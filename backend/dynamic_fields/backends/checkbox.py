from __future__ import annotations

from typing import Any, Mapping

from . import register_backend
from .base import FieldBackend


@register_backend("Checkbox")
class CheckboxBackend(FieldBackend):
    """Stores 1 for checked and 0 for unchecked."""

    value_column = "value_int"

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        return value is None or value in (0, 1)
