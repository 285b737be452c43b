from __future__ import annotations

import re
from typing import Any, Mapping

from . import register_backend
from .base import FieldBackend


@register_backend("Text")
class TextBackend(FieldBackend):
    """Single line free text."""

    value_column = "value_text"
    multiline = False

    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        if value is None:
            return True
        if not isinstance(value, str):
            return False
        if not self.multiline and "\n" in value:
            return False
        config = field.get("config")
        regex = config.get("regex") if isinstance(config, Mapping) else None
        if regex:
            return re.search(regex, value) is not None
        return True


@register_backend("TextArea")
class TextAreaBackend(TextBackend):
    multiline = True
