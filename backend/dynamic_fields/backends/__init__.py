"""Backend registry and resolver."""
from __future__ import annotations

import logging
from importlib import import_module
from threading import Lock
from typing import Any, Callable, Iterable, Mapping

from ..errors import (
    BackendConfigError,
    BackendLoadError,
    UnknownFieldTypeError,
)
from .base import BackendContext, FieldBackend

_logger = logging.getLogger(__name__)

BackendFactory = Callable[[BackendContext, str], FieldBackend]

_REGISTRY: dict[str, BackendFactory] = {}


def register_backend(field_type: str) -> Callable[[type[FieldBackend]], type[FieldBackend]]:
    """Register a backend class under *field_type* and return it for decorator use."""

    def decorator(backend: type[FieldBackend]) -> type[FieldBackend]:
        _REGISTRY[field_type] = backend
        return backend

    return decorator


def load_backend_modules(modules: Iterable[str]) -> None:
    """Import extra backend modules so their ``register_backend`` calls run."""

    for module in modules:
        try:
            import_module(module)
        except ImportError as exc:
            _logger.error("Can't load dynamic field backend module %s: %s", module, exc)
            raise BackendLoadError(f"Can't load dynamic field backend module {module}!") from exc


def _field_type_of(field_config: Any) -> str | None:
    if hasattr(field_config, "model_dump"):
        field_config = field_config.model_dump()
    if not isinstance(field_config, Mapping) or not field_config:
        return None
    return field_config.get("field_type") or None


class BackendResolver:
    """Hand out one long-lived backend instance per field type."""

    def __init__(
        self,
        context: BackendContext,
        registry: Mapping[str, BackendFactory] | None = None,
    ) -> None:
        self.context = context
        self._registry = dict(_REGISTRY if registry is None else registry)
        self._instances: dict[str, FieldBackend] = {}
        self._lock = Lock()

    def field_types(self) -> set[str]:
        return set(self._registry)

    def get(self, field_config: Any) -> FieldBackend:
        if not field_config:
            _logger.error("Need FieldConfig!")
            raise BackendConfigError("Need FieldConfig!")
        field_type = _field_type_of(field_config)
        if not field_type:
            _logger.error("FieldConfig is invalid!")
            raise BackendConfigError("FieldConfig is invalid!")

        factory = self._registry.get(field_type)
        if factory is None:
            _logger.error("Registration for field type %s is invalid!", field_type)
            raise UnknownFieldTypeError(f"Registration for field type {field_type} is invalid!")

        with self._lock:
            instance = self._instances.get(field_type)
        if instance is not None:
            return instance

        # built outside the lock; only a fully constructed instance is published
        try:
            instance = factory(self.context, field_type)
        except Exception as exc:
            _logger.error("Can't create dynamic field backend for field type %s: %s", field_type, exc)
            raise BackendLoadError(
                f"Can't create dynamic field backend for field type {field_type}!"
            ) from exc
        with self._lock:
            return self._instances.setdefault(field_type, instance)

    def is_cached(self, field_type: str) -> bool:
        with self._lock:
            return field_type in self._instances

    def reset(self) -> None:
        with self._lock:
            self._instances.clear()


_RESOLVER: BackendResolver | None = None
_RESOLVER_LOCK = Lock()


def get_backend_resolver(context: BackendContext) -> BackendResolver:
    """Return the process-wide resolver, creating it on first use."""

    global _RESOLVER
    with _RESOLVER_LOCK:
        if _RESOLVER is None:
            load_backend_modules(context.settings.backend_modules)
            _RESOLVER = BackendResolver(context)
        return _RESOLVER


def reset_backend_resolver() -> None:
    global _RESOLVER
    with _RESOLVER_LOCK:
        _RESOLVER = None


# register built-in backends
from . import checkbox, date, dropdown, text  # noqa: F401,E402
