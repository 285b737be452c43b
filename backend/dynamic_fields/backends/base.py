from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from ..cache import Cache
    from ..config import RegistrySettings


@dataclass(frozen=True)
class BackendContext:
    """Process-wide collaborators handed to every backend constructor."""

    settings: "RegistrySettings"
    cache: "Cache"


class FieldBackend(ABC):
    """Abstract handler for one dynamic field type."""

    # column of dynamic_field_value holding this type's data
    value_column: str = "value_text"

    def __init__(self, context: BackendContext, field_type: str) -> None:
        self.context = context
        self.field_type = field_type

    @abstractmethod
    def validate_value(self, field: Mapping[str, Any], value: Any) -> bool:
        pass

    def describe(self) -> dict[str, str]:
        return {
            "field_type": self.field_type,
            "backend": type(self).__name__,
            "value_column": self.value_column,
        }
