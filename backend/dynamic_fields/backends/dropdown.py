from __future__ import annotations

from typing import Any, Mapping

from . import register_backend
from .base import FieldBackend


def _possible_values(field: Mapping[str, Any]) -> set[str]:
    config = field.get("config")
    if not isinstance(config, Mapping):
        return set()
    options = config.get("possible_values") or config.get("options") or []
    if isinstance(options, Mapping):
        return {str(key) for key in options}
    return {str(option) for option in options}


@register_backend("Dropdown")
class DropdownBackend(FieldBackend):
    """One value chosen from the configured options."""

    value_column = "value_text"

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        if value is None or value == "":
            return True
        return str(value) in _possible_values(field)


@register_backend("Multiselect")
class MultiselectBackend(FieldBackend):
    """Any subset of the configured options."""

    value_column = "value_text"

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            value = [value]
        allowed = _possible_values(field)
        return all(str(item) in allowed for item in value)
