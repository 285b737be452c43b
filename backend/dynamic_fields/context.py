from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from .backends import BackendResolver, get_backend_resolver
from .backends.base import BackendContext
from .cache import Cache, get_cache
from .config import RegistrySettings, get_settings
from .valid import ValidLookup

# purpose: explicit collaborator bundle passed to the registry instead of an ambient object bag
# status: active


@dataclass
class RegistryContext:
    """Collaborators one registry instance works against."""

    db: Session
    cache: Cache
    valid: ValidLookup
    settings: RegistrySettings
    resolver: BackendResolver


def build_context(
    db: Session,
    *,
    settings: RegistrySettings | None = None,
    cache: Cache | None = None,
    resolver: BackendResolver | None = None,
) -> RegistryContext:
    """Assemble a context around *db* using process-wide defaults for the rest."""

    if settings is None:
        settings = get_settings()
    # an empty MemoryCache is falsy
    if cache is None:
        cache = get_cache(settings)
    if resolver is None:
        resolver = get_backend_resolver(BackendContext(settings=settings, cache=cache))
    return RegistryContext(
        db=db,
        cache=cache,
        valid=ValidLookup(db),
        settings=settings,
        resolver=resolver,
    )
